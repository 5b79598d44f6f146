from __future__ import annotations

import time
from collections.abc import Callable

from speedprice.core.metrics import SNAPSHOT_CACHE_HITS, SNAPSHOT_CACHE_MISSES
from speedprice.domain.models import Product


class SnapshotCache:
    """
    Kurzlebiger TTL-Cache für den Kandidaten-Snapshot der lokalen Suche.
    Verhindert, dass jeder Tastendruck den gesamten Katalog neu einliest.

    Jeder Schreibpfad MUSS `invalidate()` aufrufen, bevor er zurückkehrt.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._products: list[Product] | None = None
        self._stored_at = 0.0
        self._generation = 0

    def get(self) -> list[Product] | None:
        """Liefert den Snapshot, sofern vorhanden und nicht abgelaufen."""
        if self._products is None:
            SNAPSHOT_CACHE_MISSES.inc()
            return None

        if (self._clock() - self._stored_at) > self._ttl:
            self._products = None
            SNAPSHOT_CACHE_MISSES.inc()
            return None

        SNAPSHOT_CACHE_HITS.inc()
        return self._products

    @property
    def generation(self) -> int:
        """Wird bei jeder Invalidierung erhöht."""
        return self._generation

    def set(self, products: list[Product], generation: int | None = None) -> bool:
        """
        Legt einen neuen Snapshot ab. Mit `generation` wird der Snapshot verworfen,
        falls seit dem Einlesen invalidiert wurde.
        """
        if generation is not None and generation != self._generation:
            return False
        self._products = list(products)
        self._stored_at = self._clock()
        return True

    def invalidate(self) -> None:
        self._products = None
        self._generation += 1

    @property
    def is_warm(self) -> bool:
        return self._products is not None
