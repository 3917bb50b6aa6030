"""NotificationStateMachine plus the set-once rules for session status changes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from handoff.domain.errors import InvalidTransitionError
from handoff.domain.models import VerificationSession
from handoff.domain.types import NotificationStatus, SessionStatus
from handoff.state_machine.transitions import (
    NOTIFICATION_TERMINAL_STATES,
    NOTIFICATION_TRANSITIONS,
    NotificationEvent,
    is_forward_session_move,
)

# Timestamp column stamped when a notification enters each status.
_STATUS_TIMESTAMP: dict[NotificationStatus, str] = {
    NotificationStatus.SEEN: "seen_at",
    NotificationStatus.ACKNOWLEDGED: "acknowledged_at",
    NotificationStatus.EXPIRED: "expired_at",
}


class NotificationStateMachine:
    """Finite state machine governing one notification's delivery lifecycle.

    Usage::

        sm = NotificationStateMachine()
        sm.trigger("mark_seen")     # -> SEEN
        sm.trigger("acknowledge")   # -> ACKNOWLEDGED (terminal)
    """

    def __init__(
        self,
        initial_state: NotificationStatus = NotificationStatus.PENDING,
    ) -> None:
        self._state: NotificationStatus = initial_state
        self._history: list[tuple[NotificationStatus, str, NotificationStatus]] = []

    @property
    def state(self) -> NotificationStatus:
        """Return the current notification status."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the notification was acknowledged or expired."""
        return self._state in NOTIFICATION_TERMINAL_STATES

    @property
    def history(self) -> list[tuple[NotificationStatus, str, NotificationStatus]]:
        """Return a copy of the ``(from_status, event, to_status)`` history."""
        return list(self._history)

    def trigger(self, event: str) -> NotificationStatus:
        """Apply an event to the current status and transition.

        Args:
            event: The event string (e.g. ``"acknowledge"``).

        Returns:
            The new status after the transition.

        Raises:
            InvalidTransitionError: If the event is not allowed from the
                current status, or the notification is already terminal.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, event)

        key = (self._state, event)
        if key not in NOTIFICATION_TRANSITIONS:
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = NOTIFICATION_TRANSITIONS[key]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        return new_state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current status."""
        if self.is_terminal:
            return []
        return sorted(event for state, event in NOTIFICATION_TRANSITIONS if state == self._state)


def notification_transition_updates(
    current: NotificationStatus,
    event: NotificationEvent,
    now: datetime,
) -> dict[str, Any]:
    """Return the column updates for applying *event* to a notification.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
    """
    new_status = NotificationStateMachine(current).trigger(event)
    return {"status": new_status, _STATUS_TIMESTAMP[new_status]: now, "updated_at": now}


def session_status_updates(
    session: VerificationSession,
    target: SessionStatus,
    now: datetime,
) -> dict[str, Any]:
    """Return the column updates for moving *session* to *target*.

    Timestamps are set at most once: ``started_at`` on entering
    ``in_progress``, ``completed_at`` on entering ``completed`` or
    ``transferred``, and ``transferred_at`` on entering ``transferred``.
    A later call with the same target leaves them untouched.

    Raises:
        InvalidTransitionError: If *target* would move the session backwards.
    """
    if not is_forward_session_move(session.status, target):
        raise InvalidTransitionError(session.status, target)

    updates: dict[str, Any] = {"status": target, "updated_at": now}

    if target == SessionStatus.IN_PROGRESS and session.started_at is None:
        updates["started_at"] = now

    if target in (SessionStatus.COMPLETED, SessionStatus.TRANSFERRED) and (
        session.completed_at is None
    ):
        updates["completed_at"] = now

    if target == SessionStatus.TRANSFERRED and session.transferred_at is None:
        updates["transferred_at"] = now

    return updates
