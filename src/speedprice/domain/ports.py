# src/speedprice/domain/ports.py
from abc import ABC, abstractmethod

from speedprice.domain.models import BulkUpsertResult, Product, SearchPage, SortMode


class ProductCatalogPort(ABC):
    """
    Abstrakte Schnittstelle zum Produktkatalog (Server-of-Record oder lokaler Spiegel).
    Jeder Adapter bzw. jedes Repository MUSS dieses Interface implementieren.
    Ranking, Sync und Controller kennen ausschließlich dieses Interface.
    """

    @abstractmethod
    async def search(
        self, query: str, sort: SortMode = SortMode.NEWEST, page: int = 1, limit: int = 30
    ) -> SearchPage:
        """
        Barcode exact -> barcode prefix -> slug match, same semantics as the ranking engine.

        Raises:
            RepositoryUnavailableError: Bei Kommunikationsproblemen mit dem Katalog.
        """
        ...

    @abstractmethod
    async def create(self, product: Product) -> Product:
        """
        Inserts a product. An already known barcode is upserted onto the existing record.
        """
        ...

    @abstractmethod
    async def update(self, product: Product) -> Product:
        """
        Replaces a stored product (matched by id).

        Raises:
            ProductNotFoundError: Wenn das Produkt nicht (mehr) existiert.
        """
        ...

    @abstractmethod
    async def delete(self, product_id: str) -> None:
        """
        Raises:
            ProductNotFoundError: Wenn das Produkt nicht (mehr) existiert.
        """
        ...

    @abstractmethod
    async def get_by_id(self, product_id: str) -> Product | None: ...

    @abstractmethod
    async def get_by_barcode(self, barcode: str) -> Product | None: ...

    @abstractmethod
    async def bulk_upsert_by_barcode(self, products: list[Product]) -> BulkUpsertResult:
        """Sync push target. Products without barcode are inserted by id if unknown."""
        ...

    @abstractmethod
    async def list_since(self, timestamp: int) -> list[Product]:
        """All products with updated_at strictly greater than `timestamp`, newest first."""
        ...


# ---------------------------------------------------------------------------
# Custom Domain Exceptions
# ---------------------------------------------------------------------------


class ProductNotFoundError(Exception):
    def __init__(self, product_id: str, source: str):
        super().__init__(f"Product '{product_id}' not found in source '{source}'")
        self.product_id = product_id
        self.source = source


class ProductValidationError(Exception):
    def __init__(self, detail: str):
        super().__init__(f"Invalid product: {detail}")
        self.detail = detail


class RepositoryUnavailableError(Exception):
    def __init__(self, source: str, detail: str):
        super().__init__(f"Catalog '{source}' unavailable: {detail}")
        self.source = source
        self.detail = detail
