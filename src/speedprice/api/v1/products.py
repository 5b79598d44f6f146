from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Security, status

from speedprice.api.dependencies import (
    get_barcode_service,
    get_local_catalog,
    get_product_service,
    get_search_backend,
)
from speedprice.core.config import Settings, get_settings
from speedprice.core.security import get_operator
from speedprice.domain.models import (
    BulkUpsertRequest,
    BulkUpsertResult,
    Product,
    ProductCreate,
    ProductUpdate,
    SearchPage,
    SortMode,
    SyncPullResponse,
)
from speedprice.domain.ports import (
    ProductNotFoundError,
    ProductValidationError,
    RepositoryUnavailableError,
)
from speedprice.services.barcode_service import BarcodeService
from speedprice.services.local_catalog import LocalCatalog
from speedprice.services.product_service import ProductService
from speedprice.services.search_service import SearchBackend

router = APIRouter(prefix="/products", tags=["Products"])

OperatorDep = Annotated[str, Security(get_operator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
SearchBackendDep = Annotated[SearchBackend, Depends(get_search_backend)]
CatalogDep = Annotated[LocalCatalog, Depends(get_local_catalog)]
ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
BarcodeServiceDep = Annotated[BarcodeService, Depends(get_barcode_service)]


@router.get("", response_model=SearchPage)
async def search_products(
    operator: OperatorDep,
    backend: SearchBackendDep,
    settings: SettingsDep,
    q: str = "",
    sort: SortMode = SortMode.NEWEST,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
) -> SearchPage:
    """
    Rangierte Produktsuche: Barcode exakt, dann Barcode-Präfix, dann Namenssuche.
    Ein leerer Suchbegriff listet alle Produkte in der gewählten Sortierung.
    """
    page_size = min(limit or settings.page_size, settings.max_page_size)
    return await backend.search(q, sort, page, page_size)


@router.get("/sync", response_model=SyncPullResponse)
async def pull_changes(
    operator: OperatorDep,
    catalog: CatalogDep,
    since: int = Query(0, ge=0),
) -> SyncPullResponse:
    """Alle Produkte mit updatedAt > since (Sync-Pull)."""
    products = await catalog.list_since(since)
    return SyncPullResponse(products=products, count=len(products))


@router.post("/sync", response_model=BulkUpsertResult)
async def push_changes(
    operator: OperatorDep,
    catalog: CatalogDep,
    payload: BulkUpsertRequest,
) -> BulkUpsertResult:
    """Bulk-Upsert per Barcode (Sync-Push); neuere Stände gewinnen."""
    return await catalog.bulk_upsert_by_barcode(payload.products)


@router.get("/barcode/{barcode}", response_model=Product)
async def lookup_barcode(
    operator: OperatorDep,
    service: BarcodeServiceDep,
    barcode: str,
) -> Product:
    """
    Sucht ein Produkt anhand seines Barcodes in allen konfigurierten Katalogen.
    """
    try:
        return await service.lookup(barcode)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RepositoryUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: str, operator: OperatorDep, service: ProductServiceDep
) -> Product:
    try:
        return await service.get(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
async def create_product(
    operator: OperatorDep,
    service: ProductServiceDep,
    payload: ProductCreate,
) -> Product:
    """
    Legt ein Produkt an. Ist der Barcode bereits bekannt, wird das bestehende
    Produkt aktualisiert (ID bleibt erhalten).
    """
    try:
        return await service.create(payload)
    except ProductValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.detail)


@router.patch("/{product_id}", response_model=Product)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    operator: OperatorDep,
    service: ProductServiceDep,
) -> Product:
    try:
        return await service.update(product_id, payload)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ProductValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.detail)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str, operator: OperatorDep, service: ProductServiceDep
) -> None:
    try:
        await service.delete(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
