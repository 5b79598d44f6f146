from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from speedprice.domain.ports import ProductCatalogPort

if TYPE_CHECKING:
    from speedprice.domain.models import FavoriteEntry, HistoryEntry, Product


class AbstractProductRepository(ProductCatalogPort):
    """Katalog-Port plus die Operationen, die nur ein lokaler Speicher anbietet."""

    @abstractmethod
    async def list_all(self) -> list[Product]:
        """All products in insertion order."""
        ...

    @abstractmethod
    async def save(self, product: Product) -> Product:
        """Stores the product as-is (keyed by id), keeping its updated_at."""
        ...

    @abstractmethod
    async def clear(self) -> None: ...


class AbstractHistoryRepository(ABC):
    @abstractmethod
    async def append(self, entry: HistoryEntry, limit: int) -> HistoryEntry:
        """Appends an entry and evicts the oldest ones beyond `limit`."""
        ...

    @abstractmethod
    async def list_recent(self, limit: int) -> list[HistoryEntry]:
        """Newest first."""
        ...

    @abstractmethod
    async def clear(self) -> None: ...


class AbstractFavoriteRepository(ABC):
    @abstractmethod
    async def find(self, product_id: str) -> FavoriteEntry | None: ...

    @abstractmethod
    async def add(self, entry: FavoriteEntry) -> FavoriteEntry: ...

    @abstractmethod
    async def remove(self, product_id: str) -> bool:
        """Returns True if a favorite was removed."""
        ...

    @abstractmethod
    async def list_all(self) -> list[FavoriteEntry]:
        """Most recently added first."""
        ...

    @abstractmethod
    async def clear(self) -> None: ...


def resolve_upsert(existing: Product | None, incoming: Product) -> Product | None:
    """
    Last-writer-wins merge used by every bulk upsert.

    Returns the product to store, or None if the stored copy wins. The stored id
    is kept so references from history and favorites stay valid.
    """
    if existing is None:
        return incoming
    if incoming.updated_at > existing.updated_at:
        return incoming.model_copy(update={"id": existing.id})
    return None
