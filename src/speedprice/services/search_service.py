from __future__ import annotations

import logging
from typing import Protocol

from speedprice.core.metrics import SEARCH_COUNT, SEARCH_DURATION
from speedprice.domain.models import SearchPage, SortMode
from speedprice.domain.ports import ProductCatalogPort, RepositoryUnavailableError
from speedprice.services.local_catalog import LocalCatalog

logger = logging.getLogger(__name__)


class SearchBackend(Protocol):
    """Candidate source + ranking behind the query controller."""

    name: str

    async def search(self, query: str, sort: SortMode, page: int, limit: int) -> SearchPage: ...


class LocalSearchBackend:
    """Rankt über den Snapshot des lokalen Katalogs, ohne Netzwerk-Latenz."""

    name = "local"

    def __init__(self, catalog: LocalCatalog) -> None:
        self._catalog = catalog

    async def search(self, query: str, sort: SortMode, page: int, limit: int) -> SearchPage:
        with SEARCH_DURATION.labels(backend=self.name).time():
            try:
                result = await self._catalog.search(query, sort=sort, page=page, limit=limit)
            except Exception:
                # Defekter lokaler Speicher zählt wie "nichts gefunden"
                logger.exception("Local search failed for query %r", query)
                return SearchPage.empty(page)
        SEARCH_COUNT.labels(shape=result.shape).inc()
        return result


class RemoteSearchBackend:
    """Delegates ranking to the server of record; network errors degrade to an empty page."""

    name = "remote"

    def __init__(self, catalog: ProductCatalogPort) -> None:
        self._catalog = catalog

    async def search(self, query: str, sort: SortMode, page: int, limit: int) -> SearchPage:
        with SEARCH_DURATION.labels(backend=self.name).time():
            try:
                result = await self._catalog.search(query, sort=sort, page=page, limit=limit)
            except RepositoryUnavailableError as e:
                logger.warning("Remote search unavailable, returning no results: %s", e)
                return SearchPage.empty(page)
        SEARCH_COUNT.labels(shape=result.shape).inc()
        return result


def build_search_backend(
    kind: str,
    local: LocalCatalog | None = None,
    remote: ProductCatalogPort | None = None,
) -> SearchBackend:
    """Selects the candidate source by configuration (`settings.search_backend`)."""
    if kind == "local":
        if local is None:
            raise ValueError("search_backend 'local' requires a local catalog")
        return LocalSearchBackend(local)
    if kind == "remote":
        if remote is None:
            raise ValueError("search_backend 'remote' requires a remote catalog")
        return RemoteSearchBackend(remote)
    raise ValueError(f"Unknown search backend '{kind}'")
