from __future__ import annotations

import logging

from speedprice.domain.models import CatalogSource, Product
from speedprice.domain.ports import (
    ProductCatalogPort,
    ProductNotFoundError,
    RepositoryUnavailableError,
)
from speedprice.services.local_catalog import LocalCatalog

logger = logging.getLogger(__name__)


class BarcodeService:
    """
    Service für den Barcode-Lookup nach einem Scan.
    Die Reihenfolge der Kataloge wird über die Konfiguration gesteuert
    (Standard: erst lokal, dann Server).
    """

    def __init__(
        self,
        catalog_registry: dict[CatalogSource, ProductCatalogPort],
        lookup_order: list[str],
        local_cache: LocalCatalog | None = None,
    ) -> None:
        self._catalog_registry = catalog_registry
        self._lookup_order = lookup_order
        self._local_cache = local_cache

    async def lookup(self, barcode: str) -> Product:
        """
        Sucht ein Produkt anhand des Barcodes in den konfigurierten Katalogen.

        Fehler eines Katalogs (außer Netzwerkfehlern) gelten als "nicht gefunden"
        und führen zum nächsten Katalog. Treffer des Servers werden lokal
        zwischengespeichert.

        Raises:
            ProductNotFoundError: Wenn das Produkt in keinem Katalog gefunden wurde.
            RepositoryUnavailableError: Wenn der Server nicht erreichbar ist (propagiert).
        """
        for source_name in self._lookup_order:
            try:
                source = CatalogSource(source_name)
            except ValueError:
                logger.warning("Invalid source '%s' in BARCODE_LOOKUP_ORDER", source_name)
                continue

            catalog = self._catalog_registry.get(source)
            if not catalog:
                logger.warning("No catalog configured for source '%s'", source_name)
                continue

            try:
                product = await catalog.get_by_barcode(barcode)
            except RepositoryUnavailableError:
                raise
            except Exception:
                logger.warning("Lookup in '%s' failed, trying next source", source, exc_info=True)
                continue

            if product is None:
                continue
            if source is CatalogSource.REMOTE:
                await self._remember(product)
            return product

        raise ProductNotFoundError(barcode, "all_configured_sources")

    async def _remember(self, product: Product) -> None:
        if self._local_cache is None:
            return
        try:
            await self._local_cache.save(product)
        except Exception:
            logger.warning("Could not cache product %s locally", product.id, exc_info=True)
