from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from speedprice.domain.models import Product, QueryShape, SearchPage, SortMode
from speedprice.domain.text import is_numeric_query, normalize, tokenize

SCORE_SLUG_PREFIX = 20
SCORE_SLUG_CONTAINS = 10
SCORE_ALL_TOKENS = 15
SCORE_BARCODE_CONTAINS = 5

DEFAULT_PAGE_SIZE = 30

_SORT_KEYS: dict[SortMode, Callable[[Product], Any]] = {
    SortMode.NEWEST: lambda p: -p.updated_at,
    SortMode.PRICE_ASC: lambda p: p.prices.retail,
    SortMode.PRICE_DESC: lambda p: -p.prices.retail,
    # Slug = normalisierter Name (+ Barcode), damit "Đường" neben "Dầu" einsortiert wird
    SortMode.NAME_ASC: lambda p: p.search_slug,
}


def sort_key(sort: SortMode) -> Callable[[Product], Any]:
    return _SORT_KEYS[sort]


def order_by(products: Sequence[Product], sort: SortMode) -> list[Product]:
    """Stable sort; equal keys keep the candidate (insertion) order."""
    return sorted(products, key=sort_key(sort))


def score(
    product: Product, normalized_query: str, tokens: Sequence[str], raw_query: str
) -> int:
    slug = product.search_slug
    total = 0
    if slug.startswith(normalized_query):
        total += SCORE_SLUG_PREFIX
    if normalized_query in slug:
        total += SCORE_SLUG_CONTAINS
    if tokens and all(token in slug for token in tokens):
        total += SCORE_ALL_TOKENS
    if product.barcode and raw_query in product.barcode:
        total += SCORE_BARCODE_CONTAINS
    return total


def paginate(
    ordered: Sequence[Product], page: int, limit: int, shape: QueryShape
) -> SearchPage:
    offset = (page - 1) * limit
    window = list(ordered[offset : offset + limit])
    return SearchPage(
        products=window,
        total=len(ordered),
        page=page,
        has_more=offset + len(window) < len(ordered),
        shape=shape,
    )


class RankingEngine:
    """
    Pure ranking over an in-memory candidate set.

    Query shapes:
      * empty            -> candidates in sort order
      * digits only      -> exact barcode, then barcode prefix, then general scoring
      * everything else  -> slug scoring (prefix, substring, all tokens, barcode)
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    def rank(
        self,
        query: str,
        candidates: Sequence[Product],
        sort: SortMode = SortMode.NEWEST,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchPage:
        limit = limit or self._page_size
        page = max(page, 1)
        trimmed = query.strip()

        # Nur Leerzeichen oder nur Akzente gelten als leere Suche
        if not normalize(trimmed):
            return paginate(order_by(candidates, sort), page, limit, QueryShape.EMPTY)

        if is_numeric_query(trimmed):
            exact = self.match_barcode(trimmed, candidates)
            if exact is not None:
                return SearchPage(
                    products=[exact] if page == 1 else [],
                    total=1,
                    page=page,
                    has_more=False,
                    shape=QueryShape.BARCODE_EXACT,
                )
            prefixed = [p for p in candidates if p.barcode and p.barcode.startswith(trimmed)]
            if prefixed:
                return paginate(order_by(prefixed, sort), page, limit, QueryShape.BARCODE_PREFIX)

        return paginate(self.score_all(trimmed, candidates, sort), page, limit, QueryShape.GENERAL)

    def score_all(
        self, raw_query: str, candidates: Sequence[Product], sort: SortMode
    ) -> list[Product]:
        """Returns every candidate with a positive score, best first."""
        normalized = normalize(raw_query)
        tokens = tokenize(normalized)
        tie_break = sort_key(sort)

        scored = []
        for product in candidates:
            value = score(product, normalized, tokens, raw_query)
            if value > 0:
                scored.append((value, product))

        scored.sort(key=lambda item: (-item[0], tie_break(item[1])))
        return [product for _, product in scored]

    @staticmethod
    def match_barcode(barcode: str, candidates: Sequence[Product]) -> Product | None:
        for product in candidates:
            if product.barcode == barcode:
                return product
        return None
