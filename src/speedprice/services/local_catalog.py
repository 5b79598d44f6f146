from __future__ import annotations

import logging

from speedprice.domain.models import BulkUpsertResult, Product, SearchPage, SortMode
from speedprice.domain.ports import ProductCatalogPort
from speedprice.repositories.base import AbstractProductRepository
from speedprice.services.ranking import RankingEngine
from speedprice.services.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


class LocalCatalog(ProductCatalogPort):
    """
    Offline mirror of the product catalog.

    Owns the snapshot cache in front of the local store; every write below
    invalidates it before returning, so the next read sees the change.
    """

    def __init__(
        self,
        store: AbstractProductRepository,
        snapshot_cache: SnapshotCache,
        ranking: RankingEngine | None = None,
    ) -> None:
        self._store = store
        self._cache = snapshot_cache
        self._ranking = ranking or RankingEngine()

    async def snapshot(self) -> list[Product]:
        products = self._cache.get()
        if products is None:
            generation = self._cache.generation
            products = await self._store.list_all()
            # a write during the read leaves the cache cold
            self._cache.set(products, generation=generation)
        return products

    def invalidate(self) -> None:
        self._cache.invalidate()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self, query: str, sort: SortMode = SortMode.NEWEST, page: int = 1, limit: int = 30
    ) -> SearchPage:
        return self._ranking.rank(query, await self.snapshot(), sort, page, limit)

    async def get_by_id(self, product_id: str) -> Product | None:
        return await self._store.get_by_id(product_id)

    async def get_by_barcode(self, barcode: str) -> Product | None:
        return await self._store.get_by_barcode(barcode)

    async def list_since(self, timestamp: int) -> list[Product]:
        return await self._store.list_since(timestamp)

    async def list_all(self) -> list[Product]:
        return await self._store.list_all()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, product: Product) -> Product:
        try:
            return await self._store.create(product)
        finally:
            self._cache.invalidate()

    async def update(self, product: Product) -> Product:
        try:
            return await self._store.update(product)
        finally:
            self._cache.invalidate()

    async def delete(self, product_id: str) -> None:
        try:
            await self._store.delete(product_id)
        finally:
            self._cache.invalidate()

    async def save(self, product: Product) -> Product:
        try:
            return await self._store.save(product)
        finally:
            self._cache.invalidate()

    async def bulk_upsert_by_barcode(self, products: list[Product]) -> BulkUpsertResult:
        try:
            return await self._store.bulk_upsert_by_barcode(products)
        finally:
            self._cache.invalidate()

    async def clear(self) -> None:
        try:
            await self._store.clear()
        finally:
            self._cache.invalidate()
        logger.info("Local catalog cleared")
