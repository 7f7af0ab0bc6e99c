"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_attempts = Counter(
    "booking_attempts_total",
    "Total booking creation attempts",
    ["outcome"],  # created, conflict, rejected, error
)

booking_cancellations = Counter(
    "booking_cancellations_total",
    "Cancelled bookings by refund tier",
    ["tier"],  # full, partial, no-refund
)

booking_latency = Histogram(
    "booking_latency_seconds",
    "Booking creation latency",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# Availability metrics
availability_latency = Histogram(
    "availability_compute_seconds",
    "Time spent computing availability on a cache miss",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5],
)

cache_operations = Counter(
    "availability_cache_operations_total",
    "Availability cache operations",
    ["operation", "result"],  # get/put/invalidate, hit/miss/ok/error
)


def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_booking_attempt(outcome: str) -> None:
    booking_attempts.labels(outcome=outcome).inc()


def record_cancellation(tier: str) -> None:
    booking_cancellations.labels(tier=tier).inc()


def record_cache_operation(operation: str, result: str) -> None:
    cache_operations.labels(operation=operation, result=result).inc()
