"""Tests for NotificationStateMachine and the session set-once rules."""

from datetime import UTC, datetime, timedelta

import pytest

from handoff.domain.errors import InvalidTransitionError
from handoff.domain.models import VerificationSession
from handoff.domain.types import NotificationStatus, SessionStatus
from handoff.state_machine.machine import (
    NotificationStateMachine,
    notification_transition_updates,
    session_status_updates,
)
from handoff.state_machine.transitions import NotificationEvent

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=UTC)
LATER = NOW + timedelta(minutes=5)

VALID_TRANSITIONS: list[tuple[NotificationStatus, str, NotificationStatus]] = [
    (NotificationStatus.PENDING, "mark_seen", NotificationStatus.SEEN),
    (NotificationStatus.PENDING, "acknowledge", NotificationStatus.ACKNOWLEDGED),
    (NotificationStatus.PENDING, "expire", NotificationStatus.EXPIRED),
    (NotificationStatus.SEEN, "acknowledge", NotificationStatus.ACKNOWLEDGED),
    (NotificationStatus.SEEN, "expire", NotificationStatus.EXPIRED),
]


def _session(status: SessionStatus, **stamps: datetime) -> VerificationSession:
    return VerificationSession(id="s1", submission_id="SUB-1", status=status, **stamps)


# ===================================================================
# Notification lifecycle
# ===================================================================
class TestNotificationTransitions:
    @pytest.mark.parametrize(("from_state", "event", "to_state"), VALID_TRANSITIONS)
    def test_valid_transition(self, from_state, event, to_state):
        sm = NotificationStateMachine(from_state)
        assert sm.trigger(event) == to_state
        assert sm.state == to_state

    def test_seen_cannot_be_marked_seen_again(self):
        sm = NotificationStateMachine(NotificationStatus.SEEN)
        with pytest.raises(InvalidTransitionError):
            sm.trigger("mark_seen")

    @pytest.mark.parametrize(
        "terminal", [NotificationStatus.ACKNOWLEDGED, NotificationStatus.EXPIRED]
    )
    @pytest.mark.parametrize("event", [e.value for e in NotificationEvent])
    def test_terminal_states_reject_everything(self, terminal, event):
        sm = NotificationStateMachine(terminal)
        assert sm.is_terminal
        with pytest.raises(InvalidTransitionError):
            sm.trigger(event)

    def test_unknown_event_rejected(self):
        with pytest.raises(InvalidTransitionError):
            NotificationStateMachine().trigger("snooze")

    def test_history_records_each_step(self):
        sm = NotificationStateMachine()
        sm.trigger("mark_seen")
        sm.trigger("acknowledge")
        assert sm.history == [
            (NotificationStatus.PENDING, "mark_seen", NotificationStatus.SEEN),
            (NotificationStatus.SEEN, "acknowledge", NotificationStatus.ACKNOWLEDGED),
        ]

    def test_valid_events_from_pending(self):
        assert NotificationStateMachine().get_valid_events() == [
            "acknowledge",
            "expire",
            "mark_seen",
        ]

    def test_valid_events_from_terminal_is_empty(self):
        assert NotificationStateMachine(NotificationStatus.EXPIRED).get_valid_events() == []


class TestNotificationTransitionUpdates:
    def test_acknowledge_stamps_acknowledged_at(self):
        updates = notification_transition_updates(
            NotificationStatus.PENDING, NotificationEvent.ACKNOWLEDGE, NOW
        )
        assert updates == {
            "status": NotificationStatus.ACKNOWLEDGED,
            "acknowledged_at": NOW,
            "updated_at": NOW,
        }

    def test_expire_stamps_expired_at(self):
        updates = notification_transition_updates(
            NotificationStatus.SEEN, NotificationEvent.EXPIRE, NOW
        )
        assert updates["expired_at"] == NOW

    def test_invalid_raises(self):
        with pytest.raises(InvalidTransitionError):
            notification_transition_updates(
                NotificationStatus.EXPIRED, NotificationEvent.ACKNOWLEDGE, NOW
            )


# ===================================================================
# Session status
# ===================================================================
class TestSessionStatusUpdates:
    def test_in_progress_stamps_started_at(self):
        updates = session_status_updates(_session(SessionStatus.NOT_STARTED), SessionStatus.IN_PROGRESS, NOW)
        assert updates["started_at"] == NOW
        assert updates["status"] == SessionStatus.IN_PROGRESS

    def test_in_progress_twice_keeps_started_at(self):
        session = _session(SessionStatus.IN_PROGRESS, started_at=NOW)
        updates = session_status_updates(session, SessionStatus.IN_PROGRESS, LATER)
        assert "started_at" not in updates

    def test_completed_stamps_completed_at(self):
        updates = session_status_updates(
            _session(SessionStatus.READY_FOR_TRANSFER), SessionStatus.COMPLETED, NOW
        )
        assert updates["completed_at"] == NOW
        assert "transferred_at" not in updates

    def test_transferred_stamps_completed_and_transferred(self):
        updates = session_status_updates(
            _session(SessionStatus.IN_PROGRESS, started_at=NOW), SessionStatus.TRANSFERRED, LATER
        )
        assert updates["completed_at"] == LATER
        assert updates["transferred_at"] == LATER

    def test_transferred_after_completed_keeps_completed_at(self):
        session = _session(SessionStatus.COMPLETED, completed_at=NOW)
        updates = session_status_updates(session, SessionStatus.TRANSFERRED, LATER)
        assert "completed_at" not in updates
        assert updates["transferred_at"] == LATER

    def test_completed_to_in_progress_rejected(self):
        session = _session(SessionStatus.COMPLETED, completed_at=NOW)
        with pytest.raises(InvalidTransitionError):
            session_status_updates(session, SessionStatus.IN_PROGRESS, LATER)

    def test_transferred_to_completed_rejected(self):
        session = _session(SessionStatus.TRANSFERRED, completed_at=NOW, transferred_at=NOW)
        with pytest.raises(InvalidTransitionError):
            session_status_updates(session, SessionStatus.COMPLETED, LATER)
