"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
orders_created_total = Counter(
    "orders_created_total",
    "Total number of orders created at the gateway",
    ["currency"],
)

orders_rejected_total = Counter(
    "orders_rejected_total",
    "Total order creations rejected before reaching the gateway",
    ["reason"],  # validation, rate_limited
)

settlements_total = Counter(
    "settlements_total",
    "Total settlement attempts by channel and outcome",
    ["channel", "status"],
)

fulfillment_errors_total = Counter(
    "fulfillment_errors_total",
    "Verified payments whose fulfillment could not be persisted",
    ["stage"],  # transaction, entitlement
)

entitlements_granted_total = Counter(
    "entitlements_granted_total",
    "Total entitlement rows created",
)

gateway_requests_total = Counter(
    "gateway_requests_total",
    "Total payment gateway API requests",
    ["method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
gateway_request_duration_seconds = Histogram(
    "gateway_request_duration_seconds",
    "Payment gateway API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
