"""
Prometheus metrics for the booking workflow
"""

from prometheus_client import Counter, Histogram, REGISTRY


def _counter(name: str, documentation: str, labels=()):
    # Re-importing the module (reloads, test collection) must not re-register
    try:
        return Counter(name, documentation, list(labels))
    except ValueError:
        return REGISTRY._names_to_collectors[name]


def _histogram(name: str, documentation: str, labels=()):
    try:
        return Histogram(name, documentation, list(labels))
    except ValueError:
        return REGISTRY._names_to_collectors[name]


REQUEST_COUNT = _counter(
    "app_requests_total",
    "Total requests",
    ["method", "endpoint", "status"]
)
REQUEST_DURATION = _histogram(
    "app_request_duration_seconds",
    "Request duration",
    ["method", "endpoint"]
)

BOOKING_HOLDS = _counter(
    "cinego_booking_holds_total",
    "Seat hold attempts by outcome",
    ["outcome"]
)
BOOKINGS_CONFIRMED = _counter(
    "cinego_bookings_confirmed_total",
    "Bookings marked paid by the payment webhook"
)
BOOKINGS_EXPIRED = _counter(
    "cinego_bookings_expired_total",
    "Unpaid bookings released by the expiry reaper"
)
WEBHOOK_EVENTS = _counter(
    "cinego_webhook_events_total",
    "Payment webhook deliveries by event type and outcome",
    ["type", "outcome"]
)
JOBS_EXECUTED = _counter(
    "cinego_jobs_total",
    "Background jobs executed by name and final status",
    ["name", "status"]
)
