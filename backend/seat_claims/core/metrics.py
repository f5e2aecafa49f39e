"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Claim metrics
claim_attempts = Counter(
    'claim_attempts_total',
    'Total seat claim attempts by terminal status',
    ['strategy', 'status']  # optimistic/pessimistic; success, conflict, exhausted, timeout, store_error
)

claim_latency = Histogram(
    'claim_latency_seconds',
    'End-to-end seat claim latency',
    ['strategy'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

claim_retries = Counter(
    'claim_retry_attempts_total',
    'Optimistic claim retries due to version conflicts'
)

lock_wait = Histogram(
    'claim_lock_wait_seconds',
    'Time spent waiting for the seat row lock',
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Store metrics
store_errors = Counter(
    'store_errors_total',
    'Seat store infrastructure failures',
    ['operation']
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_claim(strategy: str, status: str, seconds: float):
    """Record a finished claim. Status: success, conflict, exhausted, timeout, store_error"""
    claim_attempts.labels(strategy=strategy, status=status).inc()
    claim_latency.labels(strategy=strategy).observe(seconds)

def record_retry():
    claim_retries.inc()

def record_lock_wait(seconds: float):
    lock_wait.observe(seconds)

def record_store_error(operation: str):
    store_errors.labels(operation=operation).inc()
