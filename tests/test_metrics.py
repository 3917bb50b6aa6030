"""Tests for Prometheus metrics endpoint and custom business metrics."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from handoff.observability.metrics import (
    ACTIVE_SESSIONS,
    NOTIFICATIONS_TOTAL,
    SLACK_DISPATCH_TOTAL,
    setup_metrics,
)


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Reset the gauge between tests.

    Counters cannot be reset, so tests compare relative increments.
    """
    ACTIVE_SESSIONS.set(0)
    yield


@pytest.fixture()
def metrics_app() -> FastAPI:
    """Create a minimal FastAPI app with Prometheus instrumentation."""
    app = FastAPI()

    @app.get("/hello")
    async def hello():
        return {"msg": "hello"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready():
        return {"status": "ready"}

    setup_metrics(app)
    return app


@pytest.fixture()
def metrics_client(metrics_app: FastAPI) -> TestClient:
    """TestClient for the metrics-enabled app."""
    return TestClient(metrics_app)


def test_metrics_endpoint_returns_prometheus_format(metrics_client: TestClient) -> None:
    """GET /metrics returns 200 with Prometheus-format text containing expected metrics."""
    SLACK_DISPATCH_TOTAL.labels(event_type="la_ready", outcome="ok")
    NOTIFICATIONS_TOTAL.labels(notification_type="la_ready", status="pending")
    metrics_client.get("/hello")
    resp = metrics_client.get("/metrics")
    assert resp.status_code == 200
    body = resp.text
    assert "http_request" in body
    assert "handoff_active_sessions" in body
    assert "handoff_slack_dispatch_total" in body
    assert "handoff_notifications_total" in body


def test_excluded_handlers_not_in_metrics(metrics_client: TestClient) -> None:
    """/health and /ready do NOT appear as handler labels."""
    metrics_client.get("/health")
    metrics_client.get("/ready")
    resp = metrics_client.get("/metrics")
    lines = [
        line
        for line in resp.text.splitlines()
        if "http_request_duration" in line and 'handler="' in line
    ]
    for line in lines:
        assert '/health"' not in line, f"/health found in metrics: {line}"
        assert '/ready"' not in line, f"/ready found in metrics: {line}"


def test_active_sessions_gauge_changes(metrics_client: TestClient) -> None:
    """ACTIVE_SESSIONS gauge is reflected in /metrics output."""
    ACTIVE_SESSIONS.set(5)
    assert "handoff_active_sessions 5.0" in metrics_client.get("/metrics").text

    ACTIVE_SESSIONS.set(3)
    assert "handoff_active_sessions 3.0" in metrics_client.get("/metrics").text


def test_dispatch_counter_increments(metrics_client: TestClient) -> None:
    """SLACK_DISPATCH_TOTAL increments are reflected in /metrics output."""
    sample = 'handoff_slack_dispatch_total{event_type="transfer_to_la",outcome="ok"}'
    SLACK_DISPATCH_TOTAL.labels(event_type="transfer_to_la", outcome="ok")
    initial_value = _extract_value(metrics_client.get("/metrics").text, sample)

    SLACK_DISPATCH_TOTAL.labels(event_type="transfer_to_la", outcome="ok").inc()

    new_value = _extract_value(metrics_client.get("/metrics").text, sample)
    assert new_value == initial_value + 1.0


def _extract_value(text: str, sample: str) -> float:
    """Extract the numeric value of one sample line from Prometheus text output."""
    for line in text.splitlines():
        if line.startswith(sample + " "):
            return float(line.split()[-1])
    raise ValueError(f"Sample {sample} not found in output")
