from cfwatcher.observability.metrics import (
    RECONCILE_DURATION,
    RECONCILIATIONS,
    REMOTE_REQUESTS,
    generate_metrics,
    get_content_type,
    serve_metrics,
)

__all__ = [
    "RECONCILIATIONS",
    "REMOTE_REQUESTS",
    "RECONCILE_DURATION",
    "generate_metrics",
    "get_content_type",
    "serve_metrics",
]
