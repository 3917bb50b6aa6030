"""Prometheus metrics for the hand-off coordinator.

HTTP latency and request counts come from prometheus-fastapi-instrumentator.
The three business series below are moved by the code that causes the
change (the dispatcher, the notification manager, the session workflows)
rather than by scraping the database:

* ``handoff_slack_dispatch_total{event_type, outcome}``
* ``handoff_notifications_total{notification_type, status}``
* ``handoff_active_sessions``
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

# Probe and scrape routes would dominate the latency histograms.
UNINSTRUMENTED_PATHS = ("/health", "/ready", "/metrics")

SLACK_DISPATCH_TOTAL: Counter = Counter(
    "handoff_slack_dispatch_total",
    "Slack posts per hand-off event type; outcome is 'ok', 'skipped' or a dispatch error code",
    ["event_type", "outcome"],
)

NOTIFICATIONS_TOTAL: Counter = Counter(
    "handoff_notifications_total",
    "Retention notifications reaching a status (pending, seen, acknowledged, expired)",
    ["notification_type", "status"],
)

ACTIVE_SESSIONS: Gauge = Gauge(
    "handoff_active_sessions",
    "Verification sessions still pending or in progress",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* and mount the ``/metrics`` scrape endpoint."""
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=list(UNINSTRUMENTED_PATHS),
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, include_in_schema=False, should_gzip=True)
