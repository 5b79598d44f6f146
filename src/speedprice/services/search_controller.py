from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from speedprice.domain.models import SearchPage, SearchState, SortMode
from speedprice.domain.text import is_numeric_query
from speedprice.services.optimistic import apply_optimistic
from speedprice.services.ranking import DEFAULT_PAGE_SIZE
from speedprice.services.search_service import SearchBackend

logger = logging.getLogger(__name__)

Listener = Callable[[SearchState], None]


@dataclass(frozen=True)
class _Request:
    seq: int
    query: str
    sort: SortMode


class SearchController:
    """
    Mediates between keystrokes/scans and the search backend.

    Every issued search gets a monotonically increasing sequence number; a
    response is applied only if its number is still the latest one, so a slow
    earlier response can never overwrite a faster later one. Debounce timers
    are cancelled on new input, in-flight fetches are never aborted.
    """

    def __init__(
        self,
        backend: SearchBackend,
        page_size: int = DEFAULT_PAGE_SIZE,
        debounce_numeric: float = 0.08,
        debounce_text: float = 0.25,
    ) -> None:
        self._backend = backend
        self._page_size = page_size
        self._debounce_numeric = debounce_numeric
        self._debounce_text = debounce_text

        self._state = SearchState()
        self._seq = 0
        self._applied: _Request | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._loading_more = False
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SearchState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a state listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _update(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)

    # ------------------------------------------------------------------
    # Search surface
    # ------------------------------------------------------------------

    def debounce_for(self, text: str) -> float:
        """Barcode scans need low latency, typed names are coalesced longer."""
        return self._debounce_numeric if is_numeric_query(text.strip()) else self._debounce_text

    def search(self, text: str) -> None:
        """Debounced search; must be called from within the running event loop."""
        self._cancel_debounce()
        self._update(query=text)
        request = self._issue()
        task = asyncio.get_running_loop().create_task(
            self._debounced(request, self.debounce_for(text))
        )
        self._debounce_task = task
        self._track(task)

    async def search_immediate(self, text: str) -> bool:
        """Bypasses the debounce, e.g. right after a confirmed barcode scan."""
        self._cancel_debounce()
        self._update(query=text)
        return await self._fetch(self._issue())

    async def refresh(self) -> bool:
        """Re-runs the current query against current data (after local mutations)."""
        self._cancel_debounce()
        return await self._fetch(self._issue())

    async def set_sort_by(self, mode: SortMode) -> bool:
        self._cancel_debounce()
        self._update(sort_by=mode)
        return await self._fetch(self._issue())

    async def load_more(self) -> bool:
        """
        Appends the next page of the displayed query.

        Returns False without fetching if a load is already running, nothing is
        left, or a newer query is pending.
        """
        applied = self._applied
        if self._loading_more or not self._state.has_more:
            return False
        if applied is None or applied.seq != self._seq:
            return False

        next_page = self._state.page + 1
        self._loading_more = True
        self._update(is_loading_more=True)
        try:
            page = await self._backend.search(
                applied.query, applied.sort, next_page, self._page_size
            )
        finally:
            self._loading_more = False
            self._update(is_loading_more=False)

        if applied.seq != self._seq:
            logger.debug("Discarding page %d of superseded query %r", next_page, applied.query)
            return False

        known = {p.id for p in self._state.results}
        appended = [p for p in page.products if p.id not in known]
        self._update(
            results=[*self._state.results, *appended],
            total=page.total,
            page=next_page,
            has_more=page.has_more,
        )
        return True

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    def remove_optimistically(self, product_id: str) -> bool:
        remaining = [p for p in self._state.results if p.id != product_id]
        if len(remaining) == len(self._state.results):
            return False
        self._update(results=remaining, total=max(0, self._state.total - 1))
        return True

    async def delete(self, product_id: str, deleter: Callable[[str], Awaitable[None]]) -> None:
        """
        Strikes the product from the visible results, then awaits `deleter`.
        On failure the results are re-fetched and the error is re-raised.
        """
        await apply_optimistic(
            apply=lambda: self.remove_optimistically(product_id),
            commit=lambda: deleter(product_id),
            revert=self.refresh,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def settle(self) -> None:
        """Waits until no debounce timer and no background fetch is pending."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _issue(self) -> _Request:
        self._seq += 1
        return _Request(seq=self._seq, query=self._state.query, sort=self._state.sort_by)

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    def _track(self, task: asyncio.Task[None]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Debounced search failed", exc_info=task.exception())

    async def _debounced(self, request: _Request, delay: float) -> None:
        await asyncio.sleep(delay)
        # Timer abgelaufen: ab hier wird nicht mehr abgebrochen, nur noch verworfen
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        await self._fetch(request)

    async def _fetch(self, request: _Request) -> bool:
        if request.seq == self._seq:
            self._update(is_loading=not self._state.results, is_validating=True)
        try:
            page = await self._backend.search(request.query, request.sort, 1, self._page_size)
        except Exception:
            if request.seq == self._seq:
                self._update(is_loading=False, is_validating=False)
            raise

        if request.seq != self._seq:
            logger.debug("Discarding superseded results for %r", request.query)
            return False
        self._apply(request, page)
        return True

    def _apply(self, request: _Request, page: SearchPage) -> None:
        self._applied = request
        self._update(
            results=page.products,
            total=page.total,
            page=1,
            has_more=page.has_more,
            is_loading=False,
            is_validating=False,
        )
