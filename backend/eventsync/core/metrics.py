"""
Metrics instrumentation for sync observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Sync run metrics
sync_runs = Counter(
    'sync_runs_total',
    'Total sync runs',
    ['family', 'outcome']  # committed, failed, busy, skipped
)

sync_duration = Histogram(
    'sync_duration_seconds',
    'Sync run duration from fetch to commit',
    ['family'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

sync_records = Counter(
    'sync_records_total',
    'Records written by merges',
    ['family', 'operation']  # inserted, updated, deleted, skipped
)

sync_busy_skips = Counter(
    'sync_busy_skips_total',
    'Sync requests ignored because the family was already running',
    ['family']
)

store_failures = Counter(
    'store_failures_total',
    'Local store commit failures'
)

# Remote catalog metrics
remote_requests = Counter(
    'remote_requests_total',
    'Remote catalog requests',
    ['endpoint', 'result']  # ok, transport, timeout, protocol, decoding
)

# Snapshot metrics
snapshot_size = Gauge(
    'snapshot_size',
    'Number of events in the published snapshot'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def family_label(family: str) -> str:
    """Collapse per-event family keys (`slots:E1`) to their resource name."""
    return family.split(":", 1)[0]


def record_sync_run(family: str, outcome: str):
    """Record sync run. Outcome: committed, failed, busy, skipped"""
    sync_runs.labels(family=family_label(family), outcome=outcome).inc()


def record_merge(family: str, inserted: int = 0, updated: int = 0, deleted: int = 0, skipped: int = 0):
    label = family_label(family)
    for operation, count in (
        ("inserted", inserted),
        ("updated", updated),
        ("deleted", deleted),
        ("skipped", skipped),
    ):
        if count:
            sync_records.labels(family=label, operation=operation).inc(count)


def record_remote_request(endpoint: str, result: str):
    """Record remote request. Result: ok, transport, timeout, protocol, decoding"""
    remote_requests.labels(endpoint=endpoint, result=result).inc()
