from __future__ import annotations

from speedprice.domain.models import FavoriteEntry, Product
from speedprice.domain.ports import ProductCatalogPort
from speedprice.repositories.base import AbstractFavoriteRepository


class FavoritesService:
    def __init__(self, repository: AbstractFavoriteRepository, catalog: ProductCatalogPort) -> None:
        self._repo = repository
        self._catalog = catalog

    async def toggle(self, product_id: str) -> bool:
        """Adds the product to the favorites, or removes it if present. Returns the new state."""
        if await self._repo.remove(product_id):
            return False
        await self._repo.add(FavoriteEntry(product_id=product_id))
        return True

    async def is_favorite(self, product_id: str) -> bool:
        return await self._repo.find(product_id) is not None

    async def list_products(self) -> list[Product]:
        """Favorite products, most recently added first; deleted products are skipped."""
        products = []
        for entry in await self._repo.list_all():
            product = await self._catalog.get_by_id(entry.product_id)
            if product is not None:
                products.append(product)
        return products

    async def clear(self) -> None:
        await self._repo.clear()
