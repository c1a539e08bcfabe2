"""
Prometheus metrics for the SMS relay API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- SMS ingestion outcome counter (result)
- Latest-SMS lookup outcome counter (result)
- Counter of failed best-effort latest-key writes

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# result: stored, no_code, validation_error, error
sms_receive_total = Counter(
    "sms_receive_total",
    "Total SMS ingestion outcomes",
    labelnames=["result"]
)

# result: found, not_found, error
sms_lookup_total = Counter(
    "sms_lookup_total",
    "Total latest-SMS lookup outcomes",
    labelnames=["result"]
)

latest_write_failures_total = Counter(
    "latest_write_failures_total",
    "Latest-key writes that failed after the historic write succeeded"
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def normalize_path(path: str) -> str:
    """
    Collapse per-sender paths to a route template.

    /api/latest_sms/15900000000 -> /api/latest_sms/{phone}
    """
    path = path.split("?")[0]
    if path.startswith("/api/latest_sms/"):
        return "/api/latest_sms/{phone}"
    return path


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    # Normalize path to avoid high-cardinality labels
    normalized_path = normalize_path(path)

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_receive_outcome(result: str) -> None:
    """
    Record an SMS ingestion outcome.

    Args:
        result: Processing result - one of:
            - "stored": Code extracted and historic key written
            - "no_code": No verification code in the message
            - "validation_error": Request body validation failed
            - "error": Serialization or store failure
    """
    sms_receive_total.labels(result=result).inc()


def record_lookup_outcome(result: str) -> None:
    """Record a latest-SMS lookup outcome (found, not_found, error)."""
    sms_lookup_total.labels(result=result).inc()


def record_latest_write_failure() -> None:
    latest_write_failures_total.inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    """
    Get the content type for Prometheus metrics.

    Returns:
        Content type string for Prometheus exposition format
    """
    return CONTENT_TYPE_LATEST
