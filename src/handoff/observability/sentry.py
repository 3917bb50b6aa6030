"""Error reporting to Sentry, fed from structlog.

``init_sentry`` starts the SDK when a DSN is configured; ``get_sentry_processor``
returns the structlog processor that turns ERROR-level log events (failed
Slack posts, store failures, rejected settings) into Sentry events.

Log events here routinely carry lead contact details, so every outgoing
Sentry event passes through :func:`scrub_lead_contact` first.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

# Lead fields that identify the customer and must not leave the service.
LEAD_CONTACT_KEYS: frozenset[str] = frozenset(
    {"phone_number", "email", "customer_name", "customer_full_name", "street_address"}
)

_REDACTED = "[redacted]"


def scrub_lead_contact(event: dict[str, Any], hint: dict[str, Any] | None = None) -> dict[str, Any]:
    """Redact lead contact fields from a Sentry event in place.

    structlog-sentry puts the log event's key/value pairs under ``extra``
    (and the ``structlog`` context), so those are the maps scrubbed.
    """
    extra = event.get("extra")
    if isinstance(extra, dict):
        _redact(extra)

    contexts = event.get("contexts")
    if isinstance(contexts, dict):
        for context in contexts.values():
            if isinstance(context, dict):
                _redact(context)
    return event


def _redact(values: dict[str, Any]) -> None:
    for key in LEAD_CONTACT_KEYS.intersection(values):
        if values[key] is not None:
            values[key] = _REDACTED


def init_sentry(dsn: str, *, environment: str = "development") -> bool:
    """Start the Sentry SDK for *dsn*.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        environment: Environment tag attached to every event.

    Returns:
        True if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=scrub_lead_contact,
        integrations=[
            # structlog-sentry does the capturing; stop the stdlib bridge double-reporting.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Insert it after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
