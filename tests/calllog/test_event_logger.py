"""Tests for CallEventLogger: best-effort writes, enrichment, and queries."""

from __future__ import annotations

from unittest.mock import MagicMock

from handoff.calllog.logger import CallEventLogger
from handoff.calllog.models import CallLogEvent
from handoff.domain.errors import StoreError
from handoff.domain.models import AgentProfile
from handoff.domain.types import AgentType, CallEventType
from handoff.store.accessor import SqliteProfileDirectory


class TestRecord:
    def test_record_returns_log_id(self, store):
        logger = CallEventLogger(store)
        log_id = logger.log_event(
            CallEventType.CALL_PICKED_UP,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
        )
        assert isinstance(log_id, int)
        assert store.query_call_logs(submission_id="SUB-1")[0]["id"] == log_id

    def test_details_stored(self, store):
        logger = CallEventLogger(store)
        logger.log_event(
            CallEventType.CALL_DROPPED,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
            details={"reason": "customer hung up", "progress_percent": 40},
        )
        [row] = logger.query_call_logs(submission_id="SUB-1")
        assert row["event_details"]["reason"] == "customer hung up"
        assert row["event_details"]["kind"] == "call_dropped"

    def test_retention_flag_stamped(self, store):
        logger = CallEventLogger(store)
        logger.log_event(
            CallEventType.CALL_PICKED_UP,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
            is_retention_call=True,
        )
        assert logger.query_call_logs(submission_id="SUB-1")[0]["is_retention_call"] is True

    def test_insert_failure_returns_none(self):
        store = MagicMock()
        store.get_lead.return_value = None
        store.insert_call_log.side_effect = StoreError("disk I/O error")
        logger = CallEventLogger(store)

        event = CallLogEvent(
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
            event_type=CallEventType.CALL_DROPPED,
        )
        assert logger.record(event) is None

    def test_retention_flag_failure_keeps_entry(self):
        store = MagicMock()
        store.get_lead.return_value = None
        store.insert_call_log.return_value = 7
        store.set_retention_flag.side_effect = StoreError("locked")
        logger = CallEventLogger(store)

        event = CallLogEvent(
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
            event_type=CallEventType.CALL_PICKED_UP,
            is_retention_call=True,
        )
        assert logger.record(event) == 7

    def test_invalid_details_return_none(self, store):
        logger = CallEventLogger(store)
        log_id = logger.log_event(
            CallEventType.CALL_DROPPED,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
            details={"carrier": "not declared for drops"},
        )
        assert log_id is None
        assert logger.query_call_logs() == []


class TestEnrichment:
    def test_agent_name_from_profile_directory(self, store):
        store.upsert_agent_profile(AgentProfile(user_id="buf-1", display_name="Ben Buffer"))
        logger = CallEventLogger(store, SqliteProfileDirectory(store))
        logger.log_event(
            CallEventType.CALL_PICKED_UP,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
        )
        assert logger.query_call_logs()[0]["agent_name"] == "Ben Buffer"

    def test_explicit_agent_name_wins(self, store):
        store.upsert_agent_profile(AgentProfile(user_id="buf-1", display_name="Ben Buffer"))
        logger = CallEventLogger(store, SqliteProfileDirectory(store))
        logger.log_event(
            CallEventType.CALL_PICKED_UP,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
            agent_name="Benjamin",
        )
        assert logger.query_call_logs()[0]["agent_name"] == "Benjamin"

    def test_customer_and_vendor_from_lead(self, store, sample_lead):
        store.upsert_lead(sample_lead)
        logger = CallEventLogger(store)
        logger.log_event(
            CallEventType.VERIFICATION_STARTED,
            submission_id="SUB-1001",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
        )
        row = logger.query_call_logs()[0]
        assert row["customer_name"] == "Jane Doe"
        assert row["lead_vendor"] == "Ark Tech"


class TestQueries:
    def test_filters_by_agent_and_event_type(self, store):
        logger = CallEventLogger(store)
        for agent_id, event_type in [
            ("buf-1", CallEventType.CALL_PICKED_UP),
            ("buf-1", CallEventType.CALL_DROPPED),
            ("buf-2", CallEventType.CALL_PICKED_UP),
        ]:
            logger.log_event(
                event_type, submission_id="SUB-1", agent_id=agent_id, agent_type=AgentType.BUFFER
            )

        rows = logger.query_call_logs(agent_id="buf-1", event_type="call_picked_up")
        assert len(rows) == 1

    def test_newest_first(self, store, clock):
        logger = CallEventLogger(store)
        for event_type in (CallEventType.CALL_PICKED_UP, CallEventType.CALL_DROPPED):
            logger.log_event(
                event_type, submission_id="SUB-1", agent_id="buf-1", agent_type=AgentType.BUFFER
            )
            clock.advance(1)
        assert [r["event_type"] for r in logger.query_call_logs()] == [
            "call_dropped",
            "call_picked_up",
        ]

    def test_daily_agent_stats_by_agent_type(self, store):
        logger = CallEventLogger(store)
        logger.log_event(
            CallEventType.CALL_CLAIMED,
            submission_id="SUB-1",
            agent_id="la-1",
            agent_type=AgentType.LICENSED,
        )
        logger.log_event(
            CallEventType.CALL_PICKED_UP,
            submission_id="SUB-1",
            agent_id="buf-1",
            agent_type=AgentType.BUFFER,
        )
        stats = logger.daily_agent_stats(agent_type="licensed")
        assert [(s["agent_id"], s["event_count"]) for s in stats] == [("la-1", 1)]
