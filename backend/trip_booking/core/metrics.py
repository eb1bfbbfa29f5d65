"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total seat reservation attempts',
    ['outcome']  # created, replayed, conflict, rejected
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Seat reservation latency, lock wait included',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Cancellation metrics
cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled',
    ['window']  # before_cutoff, after_cutoff
)

# Settlement metrics
payment_events = Counter(
    'payment_events_total',
    'Payment provider notifications processed',
    ['action']  # confirmed, expired, skipped, duplicate
)

# Expiry sweeper metrics
expiry_sweeps = Counter(
    'expiry_sweeps_total',
    'Expiry sweeper ticks',
    ['result']  # completed, skipped, failed
)

bookings_expired = Counter(
    'bookings_expired_total',
    'Pending bookings expired by the sweeper'
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

# Convenience functions for instrumentation
def record_reservation(outcome: str):
    """Outcome: created, replayed, conflict, rejected"""
    reservation_attempts.labels(outcome=outcome).inc()

def record_cancellation(before_cutoff: bool):
    window = "before_cutoff" if before_cutoff else "after_cutoff"
    cancellations.labels(window=window).inc()

def record_payment_event(action: str):
    payment_events.labels(action=action).inc()

def record_expiry_sweep(result: str, expired: int = 0):
    """Result: completed, skipped, failed"""
    expiry_sweeps.labels(result=result).inc()
    if expired:
        bookings_expired.inc(expired)
