"""Application metrics using the Prometheus client library.

Every metric the service exports is declared here, so this file doubles
as the inventory of what is measured.  Modules import the specific
metric they own and increment/observe it at the point of action.

  Counters:   progress writes, cache hits/misses, invalidations,
               cascade anomalies, awarded achievements.
  Gauges:     in-flight HTTP requests, live cache entries.
  Histograms: HTTP request latency.

The cache counters are the ones to watch: a falling hit ratio after a
deploy usually means a key format changed, and a rising
cascade_anomalies_total means content rows were removed underneath
existing progress rows.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # 5ms cache hits up to multi-second rollup rebuilds
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress pipeline metrics
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

CACHE_INVALIDATIONS = Counter(
    "cache_invalidations_total",
    "Learner-scoped cache invalidations triggered by progress writes",
)

CACHE_ENTRIES = Gauge(
    "cache_entries",
    "Live entries held by the in-process cache store",
)

PROGRESS_WRITES = Counter(
    "progress_writes_total",
    "Recorded activity progress updates by resulting status",
    ["status"],  # not_started|in_progress|completed
)

CASCADE_ANOMALIES = Counter(
    "cascade_anomalies_total",
    "Cascade steps skipped because the content hierarchy could not be resolved",
    ["reason"],  # "activity_without_module" or "module_without_path"
)

ACHIEVEMENTS_AWARDED = Counter(
    "achievements_awarded_total",
    "Newly inserted achievements by type",
    ["type"],
)
