from __future__ import annotations

from speedprice.domain.models import BulkUpsertResult, Product, SearchPage, SortMode
from speedprice.domain.ports import ProductNotFoundError
from speedprice.repositories.base import AbstractProductRepository, resolve_upsert
from speedprice.services.ranking import RankingEngine

_SOURCE = "memory"


class InMemoryProductRepository(AbstractProductRepository):
    """
    In-Memory Produktspeicher für den Homelab-Einsatz und als Test-Double.
    Interface kann gegen die SQLite-Implementierung ausgetauscht werden.
    """

    def __init__(self, ranking: RankingEngine | None = None) -> None:
        # dict hält die Einfügereihenfolge -> stabiler Tie-Break im Ranking
        self._products: dict[str, Product] = {}
        self._ranking = ranking or RankingEngine()

    async def search(
        self, query: str, sort: SortMode = SortMode.NEWEST, page: int = 1, limit: int = 30
    ) -> SearchPage:
        return self._ranking.rank(query, list(self._products.values()), sort, page, limit)

    async def create(self, product: Product) -> Product:
        existing = self._by_barcode(product.barcode) if product.barcode else None
        if existing is not None:
            # updated_at darf beim Überschreiben nie rückwärts laufen
            product = product.model_copy(
                update={
                    "id": existing.id,
                    "updated_at": max(product.updated_at, existing.updated_at + 1),
                }
            )
        self._products[product.id] = product
        return product

    async def update(self, product: Product) -> Product:
        if product.id not in self._products:
            raise ProductNotFoundError(product.id, _SOURCE)
        self._products[product.id] = product
        return product

    async def delete(self, product_id: str) -> None:
        if self._products.pop(product_id, None) is None:
            raise ProductNotFoundError(product_id, _SOURCE)

    async def get_by_id(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    async def get_by_barcode(self, barcode: str) -> Product | None:
        return self._by_barcode(barcode)

    async def bulk_upsert_by_barcode(self, products: list[Product]) -> BulkUpsertResult:
        result = BulkUpsertResult()
        for incoming in products:
            existing = self._by_barcode(incoming.barcode) if incoming.barcode else None
            if existing is None:
                existing = self._products.get(incoming.id)
            winner = resolve_upsert(existing, incoming)
            if winner is None:
                continue
            self._products[winner.id] = winner
            if existing is None:
                result.inserted_count += 1
            else:
                result.modified_count += 1
        return result

    async def list_since(self, timestamp: int) -> list[Product]:
        newer = [p for p in self._products.values() if p.updated_at > timestamp]
        return sorted(newer, key=lambda p: -p.updated_at)

    async def list_all(self) -> list[Product]:
        return list(self._products.values())

    async def save(self, product: Product) -> Product:
        self._products[product.id] = product
        return product

    async def clear(self) -> None:
        self._products.clear()

    def _by_barcode(self, barcode: str) -> Product | None:
        for product in self._products.values():
            if product.barcode == barcode:
                return product
        return None
