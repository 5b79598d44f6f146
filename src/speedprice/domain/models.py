# src/speedprice/domain/models.py
from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

from speedprice.domain.text import build_slug, now_ms

DEFAULT_UNIT = "Cái"
_BARCODE_PATTERN = r"^\d+$"

# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------


class SortMode(StrEnum):
    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NAME_ASC = "name_asc"


class CatalogSource(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


class QueryShape(StrEnum):
    EMPTY = "empty"
    BARCODE_EXACT = "barcode_exact"
    BARCODE_PREFIX = "barcode_prefix"
    GENERAL = "general"


class Prices(BaseModel):
    retail: float = Field(gt=0, description="Einzelhandelspreis (giá lẻ)")
    wholesale: float | None = Field(
        default=None, description="Großhandelspreis (giá sỉ), fällt auf retail zurück"
    )

    @model_validator(mode="after")
    def wholesale_defaults_to_retail(self) -> Self:
        if self.wholesale is None or self.wholesale <= 0:
            self.wholesale = self.retail
        return self


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip() or None
    return value


Barcode = Annotated[str, StringConstraints(pattern=_BARCODE_PATTERN, max_length=64)]
OptionalBarcode = Annotated[Barcode | None, BeforeValidator(_blank_to_none)]
OptionalText = Annotated[str | None, BeforeValidator(_blank_to_none)]


# ---------------------------------------------------------------------------
# Aggregate: Product
# Kernkonzept: opaque ID, Barcode nur als natürlicher Lookup-Key.
# ---------------------------------------------------------------------------


class Product(BaseModel):
    """
    Katalogprodukt.
    `search_slug` wird ausschließlich aus name + barcode abgeleitet und nie angezeigt.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    barcode: OptionalBarcode = None
    name: str = Field(min_length=1, max_length=512)
    search_slug: str = Field(default="", alias="searchSlug")
    prices: Prices
    unit: str = DEFAULT_UNIT
    location: OptionalText = None
    image: OptionalText = None
    updated_at: int = Field(default_factory=now_ms, ge=0, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def derive_search_slug(self) -> Self:
        self.search_slug = build_slug(self.name, self.barcode)
        return self


# ---------------------------------------------------------------------------
# API Request/Response Schemas
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    barcode: OptionalBarcode = None
    name: str = Field(min_length=1, max_length=512)
    prices: Prices
    unit: str = DEFAULT_UNIT
    location: OptionalText = None
    image: OptionalText = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value.strip()

    @field_validator("unit")
    @classmethod
    def unit_defaults(cls, value: str) -> str:
        return value.strip() or DEFAULT_UNIT


class ProductUpdate(BaseModel):
    """Partial update. A blank `location` clears the stored location."""

    barcode: OptionalBarcode = None
    name: str | None = Field(default=None, min_length=1, max_length=512)
    prices: Prices | None = None
    unit: str | None = None
    location: OptionalText = None
    image: OptionalText = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("name must not be blank")
        return value.strip() if value is not None else None


class SearchPage(BaseModel):
    products: list[Product]
    total: int = Field(ge=0)
    page: int = Field(default=1, ge=1)
    has_more: bool = Field(default=False, alias="hasMore")
    shape: QueryShape = QueryShape.GENERAL

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def empty(cls, page: int = 1) -> SearchPage:
        return cls(products=[], total=0, page=page, has_more=False)


# ---------------------------------------------------------------------------
# Aggregate: HistoryEntry / FavoriteEntry
# ---------------------------------------------------------------------------


class HistoryEntryCreate(BaseModel):
    product_id: str = Field(alias="productId")
    barcode: str | None = None
    product_name: str = Field(min_length=1, alias="productName")
    retail_price: float = Field(ge=0, alias="retailPrice")

    model_config = ConfigDict(populate_by_name=True)


class HistoryEntry(HistoryEntryCreate):
    """Denormalisierter Lookup-Eintrag: Name und Preis zum Zeitpunkt der Abfrage."""

    id: int | None = None
    timestamp: int = Field(default_factory=now_ms)


class HistoryEntryView(HistoryEntry):
    product: Product | None = None
    formatted_price: str = Field(default="", alias="formattedPrice")


class FavoriteEntry(BaseModel):
    product_id: str = Field(alias="productId")
    added_at: int = Field(default_factory=now_ms, alias="addedAt")

    model_config = ConfigDict(populate_by_name=True)


class FavoriteToggleResult(BaseModel):
    product_id: str = Field(alias="productId")
    is_favorite: bool = Field(alias="isFavorite")

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Sync Schemas
# ---------------------------------------------------------------------------


class BulkUpsertRequest(BaseModel):
    products: list[Product] = Field(min_length=1)


class BulkUpsertResult(BaseModel):
    inserted_count: int = Field(default=0, ge=0, alias="insertedCount")
    modified_count: int = Field(default=0, ge=0, alias="modifiedCount")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def synced(self) -> int:
        return self.inserted_count + self.modified_count


class SyncPullResponse(BaseModel):
    products: list[Product]
    count: int
    server_time: int = Field(default_factory=now_ms, alias="serverTime")

    model_config = ConfigDict(populate_by_name=True)


class SyncReport(BaseModel):
    pushed: int = 0
    pulled: int = 0
    watermark: int = 0


# ---------------------------------------------------------------------------
# Observable search state (Query Controller)
# ---------------------------------------------------------------------------


class SearchState(BaseModel):
    query: str = ""
    results: list[Product] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    has_more: bool = False
    sort_by: SortMode = SortMode.NEWEST
    # is_loading: noch keine Daten; is_validating: Daten sichtbar, Abfrage läuft
    is_loading: bool = False
    is_validating: bool = False
    is_loading_more: bool = False

    model_config = {"frozen": True}
