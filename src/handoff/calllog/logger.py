"""Best-effort writer for the append-only call-update log.

Logging instruments the call-handling action; it must never be able to
abort it.  :meth:`CallEventLogger.record` therefore logs failures with
structlog and returns ``None`` instead of raising.
"""

from __future__ import annotations

from typing import Any

import structlog

from handoff.calllog.models import CallLogEvent, build_details
from handoff.domain.types import AgentType, CallEventType
from handoff.store.accessor import ProfileDirectory, VerificationStore

logger = structlog.get_logger()


class CallEventLogger:
    """Typed API for appending and reading call-update log entries.

    Args:
        store: The verification store holding ``call_update_logs``.
        profiles: Directory used to fill in missing agent names.
    """

    def __init__(
        self,
        store: VerificationStore,
        profiles: ProfileDirectory | None = None,
    ) -> None:
        self._store = store
        self._profiles = profiles

    def record(self, event: CallLogEvent) -> int | None:
        """Append *event* to the log.

        One insert creates the entry.  When ``is_retention_call`` is given a
        second, separate update stamps it; if that update fails the entry
        stays without the flag.

        Args:
            event: The agent action to record.

        Returns:
            The new entry's id, or None if the insert failed.
        """
        try:
            values = self._row_values(event)
            log_id = self._store.insert_call_log(values)
        except Exception as exc:
            logger.error(
                "call_event_log_failed",
                submission_id=event.submission_id,
                event_type=event.event_type,
                agent_id=event.agent_id,
                error=str(exc),
            )
            return None

        if event.is_retention_call is not None:
            try:
                self._store.set_retention_flag(log_id, event.is_retention_call)
            except Exception as exc:
                logger.warning(
                    "call_event_retention_flag_failed",
                    log_id=log_id,
                    submission_id=event.submission_id,
                    error=str(exc),
                )

        logger.info(
            "call_event_logged",
            log_id=log_id,
            submission_id=event.submission_id,
            event_type=event.event_type,
        )
        return log_id

    def log_event(
        self,
        event_type: CallEventType,
        *,
        submission_id: str,
        agent_id: str,
        agent_type: AgentType,
        details: dict[str, Any] | None = None,
        **linkage: Any,
    ) -> int | None:
        """Build and record an event in one call.

        Args:
            event_type: The action being recorded.
            submission_id: Lead submission id.
            agent_id: The acting agent.
            agent_type: Which side of the hand-off the agent is on.
            details: Declared detail fields for *event_type*.
            **linkage: Any other :class:`CallLogEvent` field (session ids,
                customer name, retention flag, ...).

        Returns:
            The new entry's id, or None if it could not be recorded.
        """
        try:
            event = CallLogEvent(
                submission_id=submission_id,
                agent_id=agent_id,
                agent_type=agent_type,
                event_type=event_type,
                event_details=build_details(event_type, **(details or {})),
                **linkage,
            )
        except ValueError as exc:
            logger.error(
                "call_event_invalid",
                submission_id=submission_id,
                event_type=event_type,
                error=str(exc),
            )
            return None
        return self.record(event)

    def query_call_logs(
        self,
        *,
        submission_id: str | None = None,
        agent_id: str | None = None,
        event_type: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Return matching log entries, newest first."""
        return self._store.query_call_logs(
            submission_id=submission_id,
            agent_id=agent_id,
            event_type=event_type,
            from_date=from_date,
            to_date=to_date,
            limit=limit,
        )

    def daily_agent_stats(
        self,
        *,
        agent_id: str | None = None,
        agent_type: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return per-day event counts for each agent, newest day first."""
        return self._store.daily_agent_stats(
            agent_id=agent_id,
            agent_type=agent_type,
            from_date=from_date,
            to_date=to_date,
        )

    def _row_values(self, event: CallLogEvent) -> dict[str, Any]:
        agent_name = event.agent_name
        if agent_name is None and self._profiles is not None:
            profile = self._profiles.get_profile(event.agent_id)
            if profile is not None:
                agent_name = profile.display_name

        customer_name = event.customer_name
        lead_vendor = event.lead_vendor
        if customer_name is None or lead_vendor is None:
            lead = self._store.get_lead(event.submission_id)
            if lead is not None:
                customer_name = customer_name or lead.customer_full_name
                lead_vendor = lead_vendor or lead.lead_vendor

        details = event.event_details.model_dump() if event.event_details is not None else {}

        return {
            "submission_id": event.submission_id,
            "agent_id": event.agent_id,
            "agent_type": event.agent_type,
            "agent_name": agent_name,
            "event_type": event.event_type,
            "event_details": details,
            "session_id": event.session_id,
            "verification_session_id": event.verification_session_id,
            "notification_id": event.notification_id,
            "call_result_id": event.call_result_id,
            "customer_name": customer_name,
            "lead_vendor": lead_vendor,
        }
