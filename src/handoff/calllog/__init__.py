"""Append-only call-update log: models, best-effort writer, and query CLI."""

from handoff.calllog.logger import CallEventLogger
from handoff.calllog.models import CallLogEvent, EventDetails, build_details

__all__ = ["CallEventLogger", "CallLogEvent", "EventDetails", "build_details"]
