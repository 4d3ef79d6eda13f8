"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# HTTP metrics
http_request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

rate_limited_requests = Counter(
    'rate_limited_requests_total',
    'Requests rejected by the API rate limiter'
)

# Auth metrics
auth_failures = Counter(
    'auth_failures_total',
    'Rejected credentials by reason',
    ['reason']  # missing, invalid, expired, no_user, stale
)

logins = Counter(
    'logins_total',
    'Login attempts',
    ['result']  # success, failure
)

# Booking metrics
bookings_created = Counter(
    'bookings_created_total',
    'Bookings created',
    ['source']  # admin, webhook
)

webhook_events = Counter(
    'webhook_events_total',
    'Payment webhook events received',
    ['event_type', 'result']  # processed, ignored, failed, rejected
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_auth_failure(reason: str):
    """Record rejected credential. Reason: missing, invalid, expired, no_user, stale"""
    auth_failures.labels(reason=reason).inc()


def record_login(success: bool):
    logins.labels(result="success" if success else "failure").inc()


def record_booking(source: str):
    bookings_created.labels(source=source).inc()


def record_webhook_event(event_type: str, result: str):
    webhook_events.labels(event_type=event_type, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
