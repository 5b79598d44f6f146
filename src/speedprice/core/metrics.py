from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)

SEARCH_COUNT = Counter(
    "search_requests_total",
    "Total number of ranked searches by query shape",
    ["shape"],
)

SEARCH_DURATION = Histogram(
    "search_duration_seconds",
    "Duration of a search including candidate loading",
    ["backend"],
)

REMOTE_CATALOG_COUNT = Counter(
    "remote_catalog_requests_total",
    "Total number of requests against the remote catalog",
    ["operation", "status"],
)

SYNC_PRODUCTS = Counter(
    "sync_products_total",
    "Products transferred by the sync engine",
    ["phase"],
)

SNAPSHOT_CACHE_HITS = Counter("snapshot_cache_hits_total", "Total number of snapshot cache hits")
SNAPSHOT_CACHE_MISSES = Counter(
    "snapshot_cache_misses_total", "Total number of snapshot cache misses"
)
