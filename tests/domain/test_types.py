"""Tests for domain enumerations and the session status ordering."""

import pytest

from handoff.domain.types import (
    DEFAULT_VERIFICATION_FIELDS,
    SESSION_STATUS_RANK,
    AgentType,
    CallEventType,
    NotificationStatus,
    NotificationType,
    ProgressBand,
    SessionStatus,
)


class TestSessionStatusEnum:
    """Tests for the SessionStatus enum."""

    def test_has_exactly_five_members(self):
        assert len(SessionStatus) == 5

    def test_string_serialization(self):
        assert str(SessionStatus.READY_FOR_TRANSFER) == "ready_for_transfer"

    def test_from_string(self):
        assert SessionStatus("transferred") == SessionStatus.TRANSFERRED

    def test_invalid_value_raises(self):
        with pytest.raises(ValueError):
            SessionStatus("abandoned")


class TestSessionStatusRank:
    """The rank table orders every status."""

    def test_every_status_ranked(self):
        assert set(SESSION_STATUS_RANK) == set(SessionStatus)

    def test_rank_increases_along_lifecycle(self):
        order = [
            SessionStatus.NOT_STARTED,
            SessionStatus.IN_PROGRESS,
            SessionStatus.READY_FOR_TRANSFER,
            SessionStatus.COMPLETED,
            SessionStatus.TRANSFERRED,
        ]
        ranks = [SESSION_STATUS_RANK[status] for status in order]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == len(ranks)


class TestNotificationEnums:
    def test_notification_types(self):
        assert {t.value for t in NotificationType} == {
            "buffer_connected",
            "la_ready",
            "transfer_initiated",
        }

    def test_notification_statuses(self):
        assert {s.value for s in NotificationStatus} == {
            "pending",
            "seen",
            "acknowledged",
            "expired",
        }


class TestCallEventType:
    def test_has_exactly_nine_members(self):
        assert len(CallEventType) == 9

    def test_both_transfer_spellings_exist(self):
        assert CallEventType("transferred_to_la") == CallEventType.TRANSFERRED_TO_LA
        assert (
            CallEventType("transferred_to_licensed_agent")
            == CallEventType.TRANSFERRED_TO_LICENSED_AGENT
        )

    def test_agent_types(self):
        assert {a.value for a in AgentType} == {"buffer", "licensed"}


class TestProgressBandLabels:
    def test_display_labels(self):
        assert ProgressBand.JUST_STARTED == "Just Started"
        assert ProgressBand.READY_FOR_TRANSFER == "Ready for Transfer"


class TestDefaultVerificationFields:
    def test_fields_are_unique(self):
        assert len(DEFAULT_VERIFICATION_FIELDS) == len(set(DEFAULT_VERIFICATION_FIELDS))

    def test_contains_contact_fields(self):
        for field in ("customer_full_name", "phone_number", "email"):
            assert field in DEFAULT_VERIFICATION_FIELDS
