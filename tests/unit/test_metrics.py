from prometheus_client import REGISTRY

from speedprice.domain.models import Prices, Product
from speedprice.services.snapshot_cache import SnapshotCache


def _sample(name: str) -> float:
    return REGISTRY.get_sample_value(name) or 0.0


def test_snapshot_cache_counts_hits_and_misses() -> None:
    cache = SnapshotCache(ttl_seconds=60)
    hits_before = _sample("snapshot_cache_hits_total")
    misses_before = _sample("snapshot_cache_misses_total")

    cache.get()
    cache.set([Product(name="Muối", prices=Prices(retail=5000))])
    cache.get()

    assert _sample("snapshot_cache_hits_total") == hits_before + 1
    assert _sample("snapshot_cache_misses_total") == misses_before + 1


def test_metrics_endpoint_exposes_counters(client) -> None:
    client.get("/healthz")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "search_requests_total" in response.text
    assert "sync_products_total" in response.text
