"""Prometheus metric inventory.

Every metric the service exports is defined here; the owning module
imports it and increments it where the event happens.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Authorization metrics (AuthorizationService)
# ---------------------------------------------------------------------------

AUTHZ_DECISIONS = Counter(
    "authz_decisions_total",
    "Authorization guard outcomes",
    # outcome is "allowed" or a DenialReason value
    ["guard", "outcome"],
)

STATUS_WRITE_CONFLICTS = Counter(
    "status_write_conflicts_total",
    "Status writes rejected because the stored status changed after the check",
    ["resource_type"],
)
