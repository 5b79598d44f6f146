from speedprice.domain.models import Prices, Product
from speedprice.services.snapshot_cache import SnapshotCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _products() -> list[Product]:
    return [Product(name="Gạo ST25", prices=Prices(retail=35000))]


def test_miss_when_empty() -> None:
    cache = SnapshotCache(ttl_seconds=5, clock=FakeClock())
    assert cache.get() is None
    assert cache.is_warm is False


def test_hit_within_ttl() -> None:
    clock = FakeClock()
    cache = SnapshotCache(ttl_seconds=5, clock=clock)
    products = _products()
    cache.set(products)

    clock.now = 4.9
    cached = cache.get()
    assert cached is not None
    assert [p.id for p in cached] == [p.id for p in products]


def test_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = SnapshotCache(ttl_seconds=5, clock=clock)
    cache.set(_products())

    clock.now = 5.1
    assert cache.get() is None
    assert cache.is_warm is False


def test_invalidate_drops_snapshot_immediately() -> None:
    cache = SnapshotCache(ttl_seconds=5, clock=FakeClock())
    cache.set(_products())

    cache.invalidate()

    assert cache.get() is None


def test_set_copies_the_list() -> None:
    cache = SnapshotCache(ttl_seconds=5, clock=FakeClock())
    products = _products()
    cache.set(products)
    products.clear()

    cached = cache.get()
    assert cached is not None
    assert len(cached) == 1


def test_set_with_outdated_generation_is_discarded() -> None:
    cache = SnapshotCache(ttl_seconds=5, clock=FakeClock())
    generation = cache.generation
    cache.invalidate()

    assert cache.set(_products(), generation=generation) is False
    assert cache.is_warm is False

    assert cache.set(_products(), generation=cache.generation) is True
    assert cache.is_warm is True
