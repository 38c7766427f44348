from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest, start_http_server

RECONCILIATIONS = Counter(
    "cfwatcher_reconciliations_total",
    "Container start events reconciled",
    ["outcome"],  # routed, already_routed, skipped, failed
)

REMOTE_REQUESTS = Counter(
    "cfwatcher_remote_requests_total",
    "Cloudflare API requests",
    ["operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "cfwatcher_reconcile_duration_seconds",
    "Time spent reconciling one event",
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def serve_metrics(port: int, addr: str = "0.0.0.0") -> None:
    start_http_server(port, addr=addr)
