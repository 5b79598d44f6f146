from typing import Annotated

from fastapi import APIRouter, Depends, Security

from speedprice.api.dependencies import get_favorites_service
from speedprice.core.security import get_operator
from speedprice.domain.models import FavoriteToggleResult, Product
from speedprice.services.favorites_service import FavoritesService

router = APIRouter(prefix="/favorites", tags=["Favorites"])

OperatorDep = Annotated[str, Security(get_operator)]
ServiceDep = Annotated[FavoritesService, Depends(get_favorites_service)]


@router.get("", response_model=list[Product])
async def list_favorites(operator: OperatorDep, service: ServiceDep) -> list[Product]:
    return await service.list_products()


@router.get("/{product_id}", response_model=FavoriteToggleResult)
async def get_favorite_state(
    product_id: str, operator: OperatorDep, service: ServiceDep
) -> FavoriteToggleResult:
    return FavoriteToggleResult(
        product_id=product_id, is_favorite=await service.is_favorite(product_id)
    )


@router.post("/{product_id}/toggle", response_model=FavoriteToggleResult)
async def toggle_favorite(
    product_id: str, operator: OperatorDep, service: ServiceDep
) -> FavoriteToggleResult:
    """Markiert ein Produkt als Favorit bzw. entfernt die Markierung."""
    return FavoriteToggleResult(product_id=product_id, is_favorite=await service.toggle(product_id))
