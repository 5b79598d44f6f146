import asyncio
from unittest.mock import AsyncMock

import pytest

from speedprice.api.dependencies import create_search_controller
from speedprice.core.config import Settings
from speedprice.domain.models import Prices, Product, SearchPage, SearchState, SortMode
from speedprice.domain.ports import RepositoryUnavailableError
from speedprice.repositories.memory_repository import InMemoryProductRepository
from speedprice.services.local_catalog import LocalCatalog
from speedprice.services.ranking import RankingEngine
from speedprice.services.search_controller import SearchController
from speedprice.services.search_service import LocalSearchBackend
from speedprice.services.snapshot_cache import SnapshotCache


def _product(
    name: str, barcode: str | None = None, retail: float = 1000, updated_at: int = 1
) -> Product:
    return Product(name=name, barcode=barcode, prices=Prices(retail=retail), updated_at=updated_at)


class GatedBackend:
    """Ranks over a fixed list; individual (query, page) calls can be held back."""

    name = "gated"

    def __init__(self, products: list[Product]) -> None:
        self.products = products
        self.calls: list[tuple[str, int]] = []
        self._gates: dict[tuple[str, int], asyncio.Event] = {}
        self._engine = RankingEngine(page_size=30)

    def hold(self, query: str, page: int = 1) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[(query, page)] = gate
        return gate

    async def search(self, query: str, sort: SortMode, page: int, limit: int) -> SearchPage:
        self.calls.append((query, page))
        gate = self._gates.get((query, page))
        if gate is not None:
            await gate.wait()
        return self._engine.rank(query, self.products, sort, page, limit)


@pytest.fixture
def products() -> list[Product]:
    return [
        _product("Sữa Vinamilk", "8934567", retail=30000, updated_at=3),
        _product("Cà phê Đen", "8930001", retail=25000, updated_at=2),
        _product("Bánh mì", None, retail=15000, updated_at=1),
    ]


@pytest.fixture
def backend(products: list[Product]) -> GatedBackend:
    return GatedBackend(products)


@pytest.fixture
def controller(backend: GatedBackend) -> SearchController:
    return SearchController(backend, page_size=30, debounce_numeric=0.001, debounce_text=0.01)


def _names(state: SearchState) -> list[str]:
    return [p.name for p in state.results]


def test_debounce_interval_depends_on_query_shape() -> None:
    ctrl = SearchController(GatedBackend([]), debounce_numeric=0.08, debounce_text=0.25)
    assert ctrl.debounce_for("8934567") == 0.08
    assert ctrl.debounce_for(" 8934 ") == 0.08
    assert ctrl.debounce_for("sua") == 0.25
    assert ctrl.debounce_for("") == 0.25


def test_controller_factory_uses_configured_debounce_and_page_size() -> None:
    settings = Settings(page_size=20, debounce_numeric_ms=40, debounce_text_ms=300)
    ctrl = create_search_controller(GatedBackend([]), settings)

    assert ctrl.debounce_for("8934567") == 0.04
    assert ctrl.debounce_for("sua") == 0.3
    assert ctrl._page_size == 20


@pytest.mark.asyncio  # type: ignore[misc]
async def test_slow_earlier_response_never_overwrites_later_one(
    controller: SearchController, backend: GatedBackend
) -> None:
    gate_a = backend.hold("sua")
    gate_b = backend.hold("ca phe")

    task_a = asyncio.create_task(controller.search_immediate("sua"))
    await asyncio.sleep(0)
    task_b = asyncio.create_task(controller.search_immediate("ca phe"))
    await asyncio.sleep(0)

    gate_b.set()
    assert await task_b is True
    gate_a.set()
    assert await task_a is False

    assert controller.state.query == "ca phe"
    assert _names(controller.state) == ["Cà phê Đen"]
    assert controller.state.is_validating is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_debounced_input_coalesces_keystrokes(
    controller: SearchController, backend: GatedBackend
) -> None:
    controller.search("s")
    controller.search("su")
    controller.search("sua")
    await controller.settle()

    assert backend.calls == [("sua", 1)]
    assert _names(controller.state) == ["Sữa Vinamilk"]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_in_flight_fetch_is_discarded_not_cancelled(
    controller: SearchController, backend: GatedBackend
) -> None:
    gate = backend.hold("sua")
    controller.search("sua")
    while ("sua", 1) not in backend.calls:
        await asyncio.sleep(0.005)

    controller.search("banh")
    await asyncio.sleep(0.05)
    gate.set()
    await controller.settle()

    assert backend.calls == [("sua", 1), ("banh", 1)]
    assert controller.state.query == "banh"
    assert _names(controller.state) == ["Bánh mì"]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_first_load_sets_loading_then_validating(
    controller: SearchController,
) -> None:
    seen: list[SearchState] = []
    unsubscribe = controller.subscribe(seen.append)

    await controller.search_immediate("")
    await controller.search_immediate("sua")
    unsubscribe()

    loading = [s for s in seen if s.is_loading]
    validating_with_data = [s for s in seen if s.is_validating and s.results]
    assert loading and loading[0].results == []
    assert validating_with_data
    assert controller.state.is_loading is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_empty_query_pagination_with_load_more() -> None:
    backend = GatedBackend([_product(f"Sản phẩm {i}", updated_at=i) for i in range(45)])
    controller = SearchController(backend, page_size=30)

    await controller.search_immediate("")
    assert len(controller.state.results) == 30
    assert controller.state.total == 45
    assert controller.state.has_more is True

    assert await controller.load_more() is True
    assert len(controller.state.results) == 45
    assert len({p.id for p in controller.state.results}) == 45
    assert controller.state.has_more is False
    assert controller.state.page == 2

    assert await controller.load_more() is False
    assert backend.calls == [("", 1), ("", 2)]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_concurrent_load_more_is_ignored() -> None:
    backend = GatedBackend([_product(f"Kẹo {i}", updated_at=i) for i in range(40)])
    controller = SearchController(backend, page_size=30)
    await controller.search_immediate("")

    gate = backend.hold("", page=2)
    first = asyncio.create_task(controller.load_more())
    await asyncio.sleep(0)
    assert controller.state.is_loading_more is True

    assert await controller.load_more() is False
    gate.set()
    assert await first is True
    assert controller.state.is_loading_more is False
    assert backend.calls.count(("", 2)) == 1


@pytest.mark.asyncio  # type: ignore[misc]
async def test_load_more_of_superseded_query_is_discarded() -> None:
    backend = GatedBackend(
        [_product(f"Kẹo {i}", updated_at=i) for i in range(40)] + [_product("Trà xanh")]
    )
    controller = SearchController(backend, page_size=30)
    await controller.search_immediate("")

    gate = backend.hold("", page=2)
    pending = asyncio.create_task(controller.load_more())
    await asyncio.sleep(0)
    await controller.search_immediate("tra")
    gate.set()

    assert await pending is False
    assert _names(controller.state) == ["Trà xanh"]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_set_sort_by_refetches_in_new_order(controller: SearchController) -> None:
    await controller.search_immediate("")

    assert await controller.set_sort_by(SortMode.PRICE_ASC) is True

    assert controller.state.sort_by is SortMode.PRICE_ASC
    assert [p.prices.retail for p in controller.state.results] == [15000, 25000, 30000]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_refresh_picks_up_new_data(
    controller: SearchController, backend: GatedBackend
) -> None:
    await controller.search_immediate("")
    backend.products.append(_product("Nước mắm", updated_at=10))

    await controller.refresh()

    assert _names(controller.state)[0] == "Nước mắm"
    assert controller.state.total == 4


@pytest.mark.asyncio  # type: ignore[misc]
async def test_backend_error_resets_flags_and_propagates() -> None:
    backend = AsyncMock()
    backend.search.side_effect = RuntimeError("boom")
    controller = SearchController(backend)

    with pytest.raises(RuntimeError):
        await controller.search_immediate("sua")

    assert controller.state.is_loading is False
    assert controller.state.is_validating is False


@pytest.fixture
def local_backend(products: list[Product]) -> tuple[LocalSearchBackend, LocalCatalog]:
    store = InMemoryProductRepository()
    for product in products:
        store._products[product.id] = product
    catalog = LocalCatalog(store=store, snapshot_cache=SnapshotCache(ttl_seconds=5))
    return LocalSearchBackend(catalog), catalog


@pytest.mark.asyncio  # type: ignore[misc]
async def test_optimistic_delete_success(
    local_backend: tuple[LocalSearchBackend, LocalCatalog], products: list[Product]
) -> None:
    backend, catalog = local_backend
    controller = SearchController(backend)
    await controller.search_immediate("")
    target = products[0]

    await controller.delete(target.id, catalog.delete)

    assert target.id not in {p.id for p in controller.state.results}
    assert controller.state.total == 2
    assert await catalog.get_by_id(target.id) is None


@pytest.mark.asyncio  # type: ignore[misc]
async def test_optimistic_delete_rolls_back_on_failure(
    local_backend: tuple[LocalSearchBackend, LocalCatalog], products: list[Product]
) -> None:
    backend, _ = local_backend
    controller = SearchController(backend)
    await controller.search_immediate("")
    target = products[0]

    seen: list[SearchState] = []
    controller.subscribe(seen.append)
    failing = AsyncMock(side_effect=RepositoryUnavailableError("remote", "offline"))

    with pytest.raises(RepositoryUnavailableError):
        await controller.delete(target.id, failing)

    failing.assert_awaited_once_with(target.id)
    assert any(target.id not in {p.id for p in s.results} for s in seen)
    assert target.id in {p.id for p in controller.state.results}
    assert controller.state.total == 3


def test_remove_optimistically_unknown_id_is_noop(controller: SearchController) -> None:
    assert controller.remove_optimistically("missing") is False
    assert controller.state.total == 0
