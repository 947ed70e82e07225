"""Integration tests covering request ID propagation and metrics."""

from __future__ import annotations


def test_request_id_echoed_when_provided(client):
    request_id = "test-request-123"
    response = client.get("/health", headers={"X-Request-ID": request_id})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == request_id


def test_request_id_generated_when_missing(client):
    response = client.get("/health")
    assert response.status_code == 200
    generated = response.headers.get("X-Request-ID")
    assert generated
    assert len(generated) >= 8


def test_metrics_endpoint_available(client):
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    body = response.content.decode()
    assert "mealpilot_http_requests_total" in body
    assert "mealpilot_http_request_duration_seconds" in body
