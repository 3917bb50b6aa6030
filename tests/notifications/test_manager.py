"""Tests for NotificationLifecycleManager: creation, dedup, expiry, and the gate query."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from handoff.domain.errors import InvalidTransitionError, RecordNotFoundError
from handoff.domain.types import NotificationStatus, NotificationType
from handoff.notifications.manager import NotificationLifecycleManager, call_result_link


@pytest.fixture
def manager(store) -> NotificationLifecycleManager:
    return NotificationLifecycleManager(store, la_ready_ttl_seconds=600)


def _la_ready(manager: NotificationLifecycleManager, licensed_agent_id: str = "la-1", **overrides):
    fields = {
        "submission_id": "SUB-1001",
        "verification_session_id": "vs-1",
        "buffer_agent_id": "buf-1",
        "licensed_agent_id": licensed_agent_id,
        "licensed_agent_name": "Lee Licensed",
        "customer_name": "Jane Doe",
        "lead_vendor": "Ark Tech",
    }
    fields.update(overrides)
    return manager.signal_la_ready(**fields)


def test_call_result_link() -> None:
    assert call_result_link("SUB 1") == "/call-result-update?submissionId=SUB+1"


# ---------------------------------------------------------------------------
# buffer_connected
# ---------------------------------------------------------------------------


class TestBufferConnected:
    def test_creates_pending_row(self, manager) -> None:
        notification = manager.create_buffer_connected(
            submission_id="SUB-1001",
            verification_session_id="vs-1",
            buffer_agent_id="buf-1",
            buffer_agent_name="Ben Buffer",
        )
        assert notification.notification_type == NotificationType.BUFFER_CONNECTED
        assert notification.status == NotificationStatus.PENDING
        assert notification.buffer_agent_name == "Ben Buffer"

    def test_repeat_returns_open_row(self, manager, store) -> None:
        first = manager.create_buffer_connected(
            submission_id="SUB-1001", verification_session_id="vs-1", buffer_agent_id="buf-1"
        )
        second = manager.create_buffer_connected(
            submission_id="SUB-1001", verification_session_id="vs-1", buffer_agent_id="buf-1"
        )
        assert second.id == first.id
        assert len(store.find_notifications(submission_id="SUB-1001")) == 1


# ---------------------------------------------------------------------------
# la_ready
# ---------------------------------------------------------------------------


class TestLaReady:
    def test_creates_pending_signal(self, manager) -> None:
        result = _la_ready(manager)
        assert result.created is True
        assert result.notification.status == NotificationStatus.PENDING
        assert result.notification.la_ready_at is not None
        assert result.superseded_ids == []

    def test_acknowledges_buffer_connected(self, manager, store) -> None:
        connected = manager.create_buffer_connected(
            submission_id="SUB-1001", verification_session_id="vs-1", buffer_agent_id="buf-1"
        )
        _la_ready(manager)

        stamped = store.get_notification(connected.id)
        assert stamped.status == NotificationStatus.ACKNOWLEDGED
        assert stamped.licensed_agent_id == "la-1"
        assert stamped.licensed_agent_name == "Lee Licensed"
        assert stamped.la_ready_at is not None

    def test_duplicate_delivery_is_idempotent(self, manager, store) -> None:
        first = _la_ready(manager)
        second = _la_ready(manager)
        assert second.created is False
        assert second.notification.id == first.notification.id
        rows = store.find_notifications(notification_type=NotificationType.LA_READY)
        assert len(rows) == 1

    def test_duplicate_after_acknowledge_creates_nothing(self, manager, store) -> None:
        first = _la_ready(manager)
        manager.acknowledge(first.notification.id)

        again = _la_ready(manager)

        assert again.created is False
        assert manager.pending_popup("buf-1") is None

    def test_different_licensed_agent_supersedes(self, manager, store) -> None:
        first = _la_ready(manager, "la-1")
        second = _la_ready(manager, "la-2")

        assert second.created is True
        assert second.superseded_ids == [first.notification.id]
        assert store.get_notification(first.notification.id).status == NotificationStatus.EXPIRED
        assert manager.pending_popup("buf-1").id == second.notification.id

    def test_counts_metric(self, manager) -> None:
        labels = {"notification_type": "la_ready", "status": "pending"}
        before = REGISTRY.get_sample_value("handoff_notifications_total", labels) or 0.0
        _la_ready(manager)
        after = REGISTRY.get_sample_value("handoff_notifications_total", labels)
        assert after == before + 1

    def test_insert_race_returns_winning_row(self, manager, store) -> None:
        real_insert = store.insert_notification

        def racing_insert(**fields):
            # A second worker on the same database commits its signal first.
            real_insert(**{**fields, "licensed_agent_id": "la-rival"})
            return real_insert(**fields)

        with patch.object(store, "insert_notification", side_effect=racing_insert):
            result = _la_ready(manager)

        assert result.created is False
        assert result.notification.licensed_agent_id == "la-rival"
        pending = store.find_notifications(
            notification_type=NotificationType.LA_READY,
            statuses=[NotificationStatus.PENDING],
        )
        assert [n.id for n in pending] == [result.notification.id]


# ---------------------------------------------------------------------------
# Transitions and the gate query
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_mark_seen(self, manager) -> None:
        notification = _la_ready(manager).notification
        seen = manager.mark_seen(notification.id)
        assert seen.status == NotificationStatus.SEEN
        assert seen.seen_at is not None

    def test_mark_seen_is_best_effort(self, manager) -> None:
        assert manager.mark_seen("missing") is None
        notification = _la_ready(manager).notification
        manager.expire(notification.id)
        assert manager.mark_seen(notification.id) is None

    def test_acknowledge_returns_call_result_link(self, manager, store) -> None:
        notification = _la_ready(manager).notification
        link = manager.acknowledge(notification.id)
        assert link == "/call-result-update?submissionId=SUB-1001"
        assert store.get_notification(notification.id).status == NotificationStatus.ACKNOWLEDGED

    def test_acknowledge_twice_returns_same_link(self, manager) -> None:
        notification = _la_ready(manager).notification
        assert manager.acknowledge(notification.id) == manager.acknowledge(notification.id)

    def test_acknowledge_expired_raises(self, manager) -> None:
        notification = _la_ready(manager).notification
        manager.expire(notification.id)
        with pytest.raises(InvalidTransitionError):
            manager.acknowledge(notification.id)

    def test_acknowledge_missing_raises(self, manager) -> None:
        with pytest.raises(RecordNotFoundError):
            manager.acknowledge("missing")

    def test_expire_terminal_raises(self, manager) -> None:
        notification = _la_ready(manager).notification
        manager.acknowledge(notification.id)
        with pytest.raises(InvalidTransitionError):
            manager.expire(notification.id)


class TestGateQuery:
    def test_only_pending_la_ready_for_recipient(self, manager) -> None:
        manager.create_buffer_connected(
            submission_id="SUB-1001", verification_session_id="vs-1", buffer_agent_id="buf-1"
        )
        assert manager.pending_popup("buf-1") is None

        notification = _la_ready(manager).notification
        assert manager.pending_popup("buf-1").id == notification.id
        assert manager.pending_popup("buf-2") is None

    def test_seen_signal_not_shown_again(self, manager) -> None:
        notification = _la_ready(manager).notification
        manager.mark_seen(notification.id)
        assert manager.pending_popup("buf-1") is None

    def test_ttl_expires_stale_signal(self, manager, store, clock) -> None:
        notification = _la_ready(manager).notification
        clock.advance(601)

        assert manager.pending_popup("buf-1") is None
        assert store.get_notification(notification.id).status == NotificationStatus.EXPIRED

    def test_expire_stale_keeps_fresh_rows(self, manager, clock) -> None:
        _la_ready(manager)
        clock.advance(300)
        assert manager.expire_stale() == []

    def test_new_signal_after_ttl(self, manager, clock) -> None:
        first = _la_ready(manager).notification
        clock.advance(601)
        second = _la_ready(manager)
        assert second.created is True
        assert second.notification.id != first.id
