from unittest.mock import AsyncMock

import pytest

from speedprice.domain.models import CatalogSource, Prices, Product
from speedprice.domain.ports import (
    ProductCatalogPort,
    ProductNotFoundError,
    RepositoryUnavailableError,
)
from speedprice.repositories.memory_repository import InMemoryProductRepository
from speedprice.services.barcode_service import BarcodeService
from speedprice.services.local_catalog import LocalCatalog
from speedprice.services.snapshot_cache import SnapshotCache


@pytest.fixture
def mock_product() -> Product:
    return Product(name="Bia Saigon", barcode="8935049", prices=Prices(retail=18000))


@pytest.fixture
def local_catalog() -> LocalCatalog:
    return LocalCatalog(store=InMemoryProductRepository(), snapshot_cache=SnapshotCache(5))


@pytest.fixture
def remote_catalog() -> AsyncMock:
    return AsyncMock(spec=ProductCatalogPort)


@pytest.fixture
def barcode_service(local_catalog: LocalCatalog, remote_catalog: AsyncMock) -> BarcodeService:
    return BarcodeService(
        catalog_registry={CatalogSource.LOCAL: local_catalog, CatalogSource.REMOTE: remote_catalog},
        lookup_order=["local", "remote"],
        local_cache=local_catalog,
    )


@pytest.mark.asyncio  # type: ignore[misc]
async def test_found_locally_skips_remote(
    barcode_service: BarcodeService,
    local_catalog: LocalCatalog,
    remote_catalog: AsyncMock,
    mock_product: Product,
) -> None:
    await local_catalog.save(mock_product)

    result = await barcode_service.lookup("8935049")

    assert result.id == mock_product.id
    remote_catalog.get_by_barcode.assert_not_called()


@pytest.mark.asyncio  # type: ignore[misc]
async def test_remote_hit_is_cached_locally(
    barcode_service: BarcodeService,
    local_catalog: LocalCatalog,
    remote_catalog: AsyncMock,
    mock_product: Product,
) -> None:
    remote_catalog.get_by_barcode.return_value = mock_product

    result = await barcode_service.lookup("8935049")

    assert result == mock_product
    assert await local_catalog.get_by_barcode("8935049") == mock_product


@pytest.mark.asyncio  # type: ignore[misc]
async def test_not_found_anywhere(
    barcode_service: BarcodeService, remote_catalog: AsyncMock
) -> None:
    remote_catalog.get_by_barcode.return_value = None

    with pytest.raises(ProductNotFoundError) as exc_info:
        await barcode_service.lookup("000")
    assert exc_info.value.source == "all_configured_sources"


@pytest.mark.asyncio  # type: ignore[misc]
async def test_local_store_error_falls_back_to_remote(
    remote_catalog: AsyncMock, mock_product: Product
) -> None:
    broken = AsyncMock(spec=ProductCatalogPort)
    broken.get_by_barcode.side_effect = RuntimeError("database is locked")
    remote_catalog.get_by_barcode.return_value = mock_product
    service = BarcodeService(
        catalog_registry={CatalogSource.LOCAL: broken, CatalogSource.REMOTE: remote_catalog},
        lookup_order=["local", "remote"],
    )

    assert await service.lookup("8935049") == mock_product


@pytest.mark.asyncio  # type: ignore[misc]
async def test_remote_unavailable_propagates(
    barcode_service: BarcodeService, remote_catalog: AsyncMock
) -> None:
    remote_catalog.get_by_barcode.side_effect = RepositoryUnavailableError("remote", "offline")

    with pytest.raises(RepositoryUnavailableError):
        await barcode_service.lookup("8935049")


@pytest.mark.asyncio  # type: ignore[misc]
async def test_invalid_and_unconfigured_sources_are_skipped(
    local_catalog: LocalCatalog, mock_product: Product
) -> None:
    await local_catalog.save(mock_product)
    service = BarcodeService(
        catalog_registry={CatalogSource.LOCAL: local_catalog},
        lookup_order=["unknown", "remote", "local"],
    )

    assert (await service.lookup("8935049")).id == mock_product.id
