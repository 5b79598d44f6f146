from __future__ import annotations

import logging
import uuid

from pydantic import ValidationError

from speedprice.domain.models import Product, ProductCreate, ProductUpdate
from speedprice.domain.ports import (
    ProductCatalogPort,
    ProductNotFoundError,
    ProductValidationError,
)
from speedprice.domain.text import now_ms

logger = logging.getLogger(__name__)

# None bedeutet hier "unverändert", nicht "löschen"
_KEEP_IF_NONE = ("name", "prices", "unit")


class ProductService:
    """
    Write path for products.

    Validates input, re-derives the search slug from scratch on every write and
    stamps a strictly increasing updated_at. Not-found and validation problems
    surface as distinct exceptions.
    """

    def __init__(self, catalog: ProductCatalogPort, source: str = "catalog") -> None:
        self._catalog = catalog
        self._source = source

    async def create(self, payload: ProductCreate) -> Product:
        product = Product(
            id=str(uuid.uuid4()),
            barcode=payload.barcode,
            name=payload.name,
            prices=payload.prices,
            unit=payload.unit,
            location=payload.location,
            image=payload.image,
            updated_at=now_ms(),
        )
        created = await self._catalog.create(product)
        logger.info("Product %s created (barcode=%s)", created.id, created.barcode)
        return created

    async def update(self, product_id: str, payload: ProductUpdate) -> Product:
        existing = await self.get(product_id)

        changes = payload.model_dump(exclude_unset=True)
        for key in _KEEP_IF_NONE:
            if changes.get(key) is None or (key == "unit" and not changes[key].strip()):
                changes.pop(key, None)

        barcode = changes.get("barcode")
        if barcode:
            owner = await self._catalog.get_by_barcode(barcode)
            if owner is not None and owner.id != product_id:
                raise ProductValidationError(f"barcode '{barcode}' belongs to another product")

        data = existing.model_dump()
        data.update(changes)
        data["updated_at"] = max(now_ms(), existing.updated_at + 1)
        try:
            updated = Product.model_validate(data)
        except ValidationError as e:
            raise ProductValidationError(str(e)) from e

        return await self._catalog.update(updated)

    async def delete(self, product_id: str) -> None:
        await self._catalog.delete(product_id)
        logger.info("Product %s deleted", product_id)

    async def get(self, product_id: str) -> Product:
        product = await self._catalog.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id, self._source)
        return product

    async def get_by_barcode(self, barcode: str) -> Product:
        product = await self._catalog.get_by_barcode(barcode)
        if product is None:
            raise ProductNotFoundError(barcode, self._source)
        return product
