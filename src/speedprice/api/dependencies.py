# src/speedprice/api/dependencies.py
from functools import lru_cache

import httpx
from fastapi import Depends

from speedprice.adapters.http_catalog import HttpCatalogAdapter
from speedprice.core.config import Settings, get_settings
from speedprice.domain.models import CatalogSource
from speedprice.domain.ports import ProductCatalogPort
from speedprice.repositories.sqlite_repository import (
    SQLiteDatabase,
    SQLiteFavoriteRepository,
    SQLiteHistoryRepository,
    SQLiteProductRepository,
)
from speedprice.services.barcode_service import BarcodeService
from speedprice.services.favorites_service import FavoritesService
from speedprice.services.history_service import HistoryService
from speedprice.services.local_catalog import LocalCatalog
from speedprice.services.product_service import ProductService
from speedprice.services.ranking import RankingEngine
from speedprice.services.search_controller import SearchController
from speedprice.services.search_service import SearchBackend, build_search_backend
from speedprice.services.snapshot_cache import SnapshotCache
from speedprice.services.sync_service import SyncEngine


# Shared HTTP Client (Connection Pooling)
@lru_cache
def get_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": "SpeedPrice/1.0"},
        follow_redirects=True,
    )


def get_ranking_engine(settings: Settings = Depends(get_settings)) -> RankingEngine:
    return RankingEngine(page_size=settings.page_size)


# Singleton Datenbank (Initialisiert beim ersten Zugriff)
_database: SQLiteDatabase | None = None


async def get_database(settings: Settings = Depends(get_settings)) -> SQLiteDatabase:
    global _database
    if _database is None:
        database = SQLiteDatabase(database_url=settings.database_url)
        await database.initialize()
        _database = database
    return _database


def get_product_repository(
    database: SQLiteDatabase = Depends(get_database),
    ranking: RankingEngine = Depends(get_ranking_engine),
) -> SQLiteProductRepository:
    return SQLiteProductRepository(database=database, ranking=ranking)


def get_history_repository(
    database: SQLiteDatabase = Depends(get_database),
) -> SQLiteHistoryRepository:
    return SQLiteHistoryRepository(database=database)


def get_favorite_repository(
    database: SQLiteDatabase = Depends(get_database),
) -> SQLiteFavoriteRepository:
    return SQLiteFavoriteRepository(database=database)


# Singleton Local Catalog (hält den Snapshot-Cache über Requests hinweg)
_local_catalog: LocalCatalog | None = None


def get_local_catalog(
    repository: SQLiteProductRepository = Depends(get_product_repository),
    ranking: RankingEngine = Depends(get_ranking_engine),
    settings: Settings = Depends(get_settings),
) -> LocalCatalog:
    global _local_catalog
    if _local_catalog is None:
        _local_catalog = LocalCatalog(
            store=repository,
            snapshot_cache=SnapshotCache(ttl_seconds=settings.snapshot_ttl_seconds),
            ranking=ranking,
        )
    return _local_catalog


def get_remote_catalog(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> HttpCatalogAdapter:
    return HttpCatalogAdapter(
        http_client=client,
        base_url=settings.remote_base_url,
        api_key=settings.remote_api_key,
        timeout=settings.remote_timeout_seconds,
    )


def get_catalog_registry(
    local: LocalCatalog = Depends(get_local_catalog),
    remote: HttpCatalogAdapter = Depends(get_remote_catalog),
) -> dict[CatalogSource, ProductCatalogPort]:
    """Liefert die Registry aller verfügbaren Kataloge."""
    return {
        CatalogSource.LOCAL: local,
        CatalogSource.REMOTE: remote,
    }


def get_search_backend(
    local: LocalCatalog = Depends(get_local_catalog),
    remote: HttpCatalogAdapter = Depends(get_remote_catalog),
    settings: Settings = Depends(get_settings),
) -> SearchBackend:
    return build_search_backend(settings.search_backend, local=local, remote=remote)


def get_product_service(
    local: LocalCatalog = Depends(get_local_catalog),
) -> ProductService:
    return ProductService(catalog=local, source=CatalogSource.LOCAL)


def get_barcode_service(
    registry: dict[CatalogSource, ProductCatalogPort] = Depends(get_catalog_registry),
    local: LocalCatalog = Depends(get_local_catalog),
    settings: Settings = Depends(get_settings),
) -> BarcodeService:
    return BarcodeService(
        catalog_registry=registry,
        lookup_order=settings.barcode_lookup_order,
        local_cache=local,
    )


def get_history_service(
    repository: SQLiteHistoryRepository = Depends(get_history_repository),
    local: LocalCatalog = Depends(get_local_catalog),
    settings: Settings = Depends(get_settings),
) -> HistoryService:
    return HistoryService(repository=repository, catalog=local, limit=settings.history_limit)


def get_favorites_service(
    repository: SQLiteFavoriteRepository = Depends(get_favorite_repository),
    local: LocalCatalog = Depends(get_local_catalog),
) -> FavoritesService:
    return FavoritesService(repository=repository, catalog=local)


# Singleton Sync Engine (hält den Watermark zwischen zwei Läufen)
_sync_engine: SyncEngine | None = None


def get_sync_engine(
    local: LocalCatalog = Depends(get_local_catalog),
    remote: HttpCatalogAdapter = Depends(get_remote_catalog),
) -> SyncEngine:
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = SyncEngine(local=local, remote=remote)
    return _sync_engine


def create_search_controller(backend: SearchBackend, settings: Settings) -> SearchController:
    """Controller für einen einzelnen Such-Bildschirm; nicht als Singleton teilen."""
    return SearchController(
        backend=backend,
        page_size=settings.page_size,
        debounce_numeric=settings.debounce_numeric_ms / 1000,
        debounce_text=settings.debounce_text_ms / 1000,
    )


def reset_singletons() -> None:
    global _database, _local_catalog, _sync_engine
    _database = None
    _local_catalog = None
    _sync_engine = None
