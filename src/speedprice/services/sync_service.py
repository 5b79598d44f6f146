from __future__ import annotations

import logging

from speedprice.core.metrics import SYNC_PRODUCTS
from speedprice.domain.models import Product, SyncReport
from speedprice.domain.ports import ProductCatalogPort, RepositoryUnavailableError
from speedprice.services.local_catalog import LocalCatalog

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Bidirektionaler Abgleich zwischen lokalem Katalog und Server-of-Record.

    Push: alle lokalen Produkte als Bulk-Upsert (Barcode als Merge-Key; ohne
    Barcode über die ID). Pull: alle Serverprodukte mit updated_at > Watermark,
    lokal nur überschrieben, wenn der Server-Stand strikt neuer ist.

    Netzwerkfehler setzen die betroffene Phase auf 0, ohne zu werfen; eine
    erfolgreiche Phase wird nie zurückgerollt.
    """

    def __init__(
        self, local: LocalCatalog, remote: ProductCatalogPort, watermark: int = 0
    ) -> None:
        self._local = local
        self._remote = remote
        self._watermark = watermark

    @property
    def watermark(self) -> int:
        """updated_at of the newest product received by a successful pull."""
        return self._watermark

    async def sync(self, full: bool = False) -> SyncReport:
        pushed = await self.push()
        pulled = await self.pull(since=0 if full else None)
        self._local.invalidate()
        logger.info("Sync finished: pushed=%d pulled=%d", pushed, pulled)
        return SyncReport(pushed=pushed, pulled=pulled, watermark=self._watermark)

    async def push(self) -> int:
        products = await self._local.list_all()
        if not products:
            return 0

        try:
            result = await self._remote.bulk_upsert_by_barcode(products)
        except RepositoryUnavailableError as e:
            logger.warning("Sync push skipped: %s", e)
            return 0

        SYNC_PRODUCTS.labels(phase="push").inc(result.synced)
        return result.synced

    async def pull(self, since: int | None = None) -> int:
        watermark = self._watermark if since is None else since
        try:
            remote_products = await self._remote.list_since(watermark)
        except RepositoryUnavailableError as e:
            logger.warning("Sync pull skipped: %s", e)
            return 0

        pulled = 0
        try:
            for remote in remote_products:
                if await self._merge(remote):
                    pulled += 1
                watermark = max(watermark, remote.updated_at)
        finally:
            self._local.invalidate()

        self._watermark = max(self._watermark, watermark)
        SYNC_PRODUCTS.labels(phase="pull").inc(pulled)
        return pulled

    async def _merge(self, remote: Product) -> bool:
        local = await self._find_local(remote)
        if local is None:
            await self._local.save(remote)
            return True
        # Last-writer-wins; Gleichstand behält die lokale Kopie
        if remote.updated_at > local.updated_at:
            await self._local.save(remote.model_copy(update={"id": local.id}))
            return True
        return False

    async def _find_local(self, remote: Product) -> Product | None:
        if remote.barcode:
            match = await self._local.get_by_barcode(remote.barcode)
            if match is not None:
                return match
        return await self._local.get_by_id(remote.id)
