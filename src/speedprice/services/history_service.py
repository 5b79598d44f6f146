from __future__ import annotations

from speedprice.domain.models import HistoryEntry, HistoryEntryCreate, HistoryEntryView, Product
from speedprice.domain.ports import ProductCatalogPort
from speedprice.domain.text import format_price, now_ms
from speedprice.repositories.base import AbstractHistoryRepository


class HistoryService:
    def __init__(
        self,
        repository: AbstractHistoryRepository,
        catalog: ProductCatalogPort,
        limit: int = 100,
    ) -> None:
        self._repo = repository
        self._catalog = catalog
        self._limit = limit

    async def record(self, product: Product) -> HistoryEntry:
        """Logs a product view with name and retail price as they are right now."""
        return await self.add(
            HistoryEntryCreate(
                product_id=product.id,
                barcode=product.barcode,
                product_name=product.name,
                retail_price=product.prices.retail,
            )
        )

    async def add(self, payload: HistoryEntryCreate) -> HistoryEntry:
        entry = HistoryEntry(**payload.model_dump(), timestamp=now_ms())
        return await self._repo.append(entry, self._limit)

    async def list_recent(self, limit: int | None = None) -> list[HistoryEntryView]:
        entries = await self._repo.list_recent(min(limit or self._limit, self._limit))

        # Produkte nur einmal pro ID laden
        products: dict[str, Product | None] = {}
        for entry in entries:
            if entry.product_id not in products:
                products[entry.product_id] = await self._catalog.get_by_id(entry.product_id)

        return [
            HistoryEntryView(
                **entry.model_dump(),
                product=products[entry.product_id],
                formatted_price=format_price(entry.retail_price),
            )
            for entry in entries
        ]

    async def clear(self) -> None:
        await self._repo.clear()
