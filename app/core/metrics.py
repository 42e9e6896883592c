"""Every Prometheus series rental-service exports.

Counters are bumped where the event happens (services, cache reads, the
metrics middleware) and scraped from GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# --- HTTP (app.middleware.metrics) ---

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests by method, route template and status",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency by method and route template",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "HTTP requests in flight",
)

# --- Rentals, progress, identity ---

RENTALS_CREATED = Counter(
    "rentals_created_total",
    "Rentals recorded, by kind",
    ["kind"],  # "direct" or "pack"
)

RENTAL_CONFLICTS = Counter(
    "rental_conflicts_total",
    "Rental creations rejected as duplicates",
    ["reason"],  # "active_rental" or "transaction"
)

ACCESS_CHECKS = Counter(
    "access_checks_total",
    "Entitlement checks by outcome",
    ["result"],  # "direct", "pack" or "denied"
)

PROGRESS_WRITES = Counter(
    "progress_writes_total",
    "Watch-progress writes by merge outcome",
    ["outcome"],  # "created", "advanced" or "rejected"
)

MIGRATIONS = Counter(
    "identity_migrations_total",
    "Anonymous-to-user migrations by result",
    ["result"],  # "migrated", "noop" or "failed"
)

ANONYMOUS_TOKEN_VERIFICATIONS = Counter(
    "anonymous_token_verifications_total",
    "Anonymous token verifications by result",
    ["result"],  # "valid", "invalid" or "expired"
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)
