from __future__ import annotations

import logging
from typing import Any

import httpx

from speedprice.core.metrics import REMOTE_CATALOG_COUNT
from speedprice.domain.models import (
    BulkUpsertResult,
    Product,
    SearchPage,
    SortMode,
    SyncPullResponse,
)
from speedprice.domain.ports import (
    ProductCatalogPort,
    ProductNotFoundError,
    ProductValidationError,
    RepositoryUnavailableError,
)

logger = logging.getLogger(__name__)

_SOURCE = "remote"
_API_PREFIX = "/api/v1/products"

# Felder, die der Server beim Anlegen/Ändern akzeptiert (id und Slug vergibt er selbst)
_WRITABLE_FIELDS = {"barcode", "name", "prices", "unit", "location", "image"}


class HttpCatalogAdapter(ProductCatalogPort):
    """
    Adapter für den Server-of-Record (SpeedPrice HTTP API).

    HTTP-Statuscodes werden in Domain-Exceptions übersetzt: 404 -> ProductNotFoundError
    (bzw. None bei Lookups), 400/422 -> ProductValidationError, alles andere sowie
    Verbindungsfehler -> RepositoryUnavailableError.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = http_client
        self._base_url = base_url.rstrip("/")
        self._headers = {"X-API-Key": api_key} if api_key else {}
        self._timeout = timeout

    async def search(
        self, query: str, sort: SortMode = SortMode.NEWEST, page: int = 1, limit: int = 30
    ) -> SearchPage:
        params = {"q": query, "sort": sort.value, "page": page, "limit": limit}
        response = await self._request("search", "GET", _API_PREFIX, params=params)
        return SearchPage.model_validate(response.json())

    async def create(self, product: Product) -> Product:
        body = product.model_dump(mode="json", include=_WRITABLE_FIELDS)
        response = await self._request("create", "POST", _API_PREFIX, json=body)
        return Product.model_validate(response.json())

    async def update(self, product: Product) -> Product:
        body = product.model_dump(mode="json", include=_WRITABLE_FIELDS)
        response = await self._request(
            "update", "PATCH", f"{_API_PREFIX}/{product.id}", json=body, not_found=product.id
        )
        return Product.model_validate(response.json())

    async def delete(self, product_id: str) -> None:
        await self._request(
            "delete", "DELETE", f"{_API_PREFIX}/{product_id}", not_found=product_id
        )

    async def get_by_id(self, product_id: str) -> Product | None:
        try:
            response = await self._request(
                "get", "GET", f"{_API_PREFIX}/{product_id}", not_found=product_id
            )
        except ProductNotFoundError:
            return None
        return Product.model_validate(response.json())

    async def get_by_barcode(self, barcode: str) -> Product | None:
        try:
            response = await self._request(
                "barcode", "GET", f"{_API_PREFIX}/barcode/{barcode}", not_found=barcode
            )
        except ProductNotFoundError:
            return None
        return Product.model_validate(response.json())

    async def bulk_upsert_by_barcode(self, products: list[Product]) -> BulkUpsertResult:
        if not products:
            return BulkUpsertResult()
        body = {"products": [p.model_dump(mode="json", by_alias=True) for p in products]}
        response = await self._request("push", "POST", f"{_API_PREFIX}/sync", json=body)
        return BulkUpsertResult.model_validate(response.json())

    async def list_since(self, timestamp: int) -> list[Product]:
        return (await self.pull(timestamp)).products

    async def pull(self, since: int) -> SyncPullResponse:
        response = await self._request(
            "pull", "GET", f"{_API_PREFIX}/sync", params={"since": since}
        )
        return SyncPullResponse.model_validate(response.json())

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        not_found: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers,
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.RequestError as e:
            REMOTE_CATALOG_COUNT.labels(operation=operation, status="error").inc()
            raise RepositoryUnavailableError(_SOURCE, f"Connection error: {e}") from e

        REMOTE_CATALOG_COUNT.labels(operation=operation, status=str(response.status_code)).inc()

        if response.status_code == 404 and not_found is not None:
            raise ProductNotFoundError(not_found, _SOURCE)
        if response.status_code in (400, 422):
            raise ProductValidationError(response.text)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Remote catalog %s failed with status %s", operation, response.status_code
            )
            raise RepositoryUnavailableError(_SOURCE, str(e)) from e
        return response
