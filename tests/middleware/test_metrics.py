"""Prometheus metrics middleware and domain counters.

Counters live in the global default registry and cannot be reset
between tests, so every assertion is on a DELTA: read, act, read again.
"""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import MOVIE_ID, rental_body, user_headers


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_and_histogram(client: TestClient) -> None:
    count_labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    duration_labels = {"method": "GET", "endpoint": "/health"}
    count_before = _get_sample("http_requests_total", count_labels)
    observed_before = _get_sample("http_request_duration_seconds_count", duration_labels)

    client.get("/health")

    assert _get_sample("http_requests_total", count_labels) - count_before == 1
    assert (
        _get_sample("http_request_duration_seconds_count", duration_labels) - observed_before
        == 1
    )


def test_endpoint_label_is_route_template(client: TestClient) -> None:
    """Asset UUIDs must not become label values; the route template is used."""
    labels = {"method": "GET", "endpoint": "/v1/rentals/{asset_id}", "status_code": "401"}
    before = _get_sample("http_requests_total", labels)
    client.get(f"/v1/rentals/{uuid.uuid4()}")
    client.get(f"/v1/rentals/{uuid.uuid4()}")
    assert _get_sample("http_requests_total", labels) - before == 2


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get(f"/no-such-thing/{uuid.uuid4()}")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_metrics_endpoint_exposes_domain_counters(client: TestClient, seeded_catalog) -> None:
    before = _get_sample("rentals_created_total", {"kind": "direct"})
    client.post(f"/v1/rentals/{MOVIE_ID}", json=rental_body(), headers=user_headers(uuid.uuid4()))
    assert _get_sample("rentals_created_total", {"kind": "direct"}) - before == 1

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "rentals_created_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before
