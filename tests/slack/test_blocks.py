"""Tests for the Block Kit message builders."""

from __future__ import annotations

from typing import Any

from handoff.slack.blocks import (
    build_application_not_submitted_blocks,
    build_application_submitted_blocks,
    build_banking_fix_blocks,
    build_buffer_connected_blocks,
    build_call_dropped_center_blocks,
    build_callback_request_blocks,
    build_carrier_requirement_blocks,
    build_disconnected_blocks,
    build_la_ready_blocks,
    build_transfer_blocks,
    build_verification_started_blocks,
    call_result_url,
)
from handoff.slack.models import (
    ApplicationOutcomeEvent,
    BankingFixEvent,
    BufferConnectedEvent,
    CallbackRequestEvent,
    CallDisconnectedEvent,
    CarrierRequirementFulfilledEvent,
    LaReadyConfirmationEvent,
    RetentionDetails,
    TransferEvent,
    VerificationStartedEvent,
)

BASE_URL = "https://portal.example.com/"


def _all_text(blocks: list[dict[str, Any]]) -> str:
    """Flatten every text value in *blocks* into one string."""
    parts: list[str] = []

    def walk(node: Any) -> None:
        if isinstance(node, dict):
            for key, value in node.items():
                if key in ("text", "url") and isinstance(value, str):
                    parts.append(value)
                else:
                    walk(value)
        elif isinstance(node, list):
            for item in node:
                walk(item)

    walk(blocks)
    return "\n".join(parts)


def _button(blocks: list[dict[str, Any]]) -> dict[str, Any]:
    actions = next(b for b in blocks if b["type"] == "actions")
    return actions["elements"][0]


class TestCallResultUrl:
    def test_strips_trailing_slash_and_drops_empty_params(self):
        url = call_result_url(BASE_URL, "SUB-1", sessionId="vs-1", notificationId=None)
        assert url == (
            "https://portal.example.com/call-result-update?submissionId=SUB-1&sessionId=vs-1"
        )


class TestCallbackRequest:
    def test_fields_and_button(self):
        event = CallbackRequestEvent(
            submission_id="SUB-1",
            customer_name="Jane Doe",
            lead_vendor="Ark Tech",
            request_type="Updated Banking Info",
        )
        text, blocks = build_callback_request_blocks(event, BASE_URL)

        assert "Callback Request from Ark Tech" in text
        body = _all_text(blocks)
        assert "*Carrier:*\nN/A" in body
        assert "No additional notes" in body
        assert _button(blocks)["action_id"] == "update_call_result"
        assert _button(blocks)["url"].endswith("submissionId=SUB-1")


class TestDisconnected:
    def test_dropped_call(self):
        event = CallDisconnectedEvent(submission_id="SUB-1", dropped=True, customer_name="Jane Doe")
        text, blocks = build_disconnected_blocks(event)
        assert text == ":telephone_receiver: Dropped Call - Jane Doe"
        assert "*Status:* Dropped" in _all_text(blocks)

    def test_disconnected_defaults(self):
        event = CallDisconnectedEvent(submission_id="SUB-1")
        text, blocks = build_disconnected_blocks(event)
        assert text == ":x: Disconnected Call - Unknown Customer"
        body = _all_text(blocks)
        assert "No phone number" in body
        assert "No email" in body

    def test_center_notice(self):
        event = CallDisconnectedEvent(submission_id="SUB-1", dropped=True, customer_name="Jane Doe")
        text, _ = build_call_dropped_center_blocks(event)
        assert "Need to reconnect" in text


class TestVerificationStarted:
    def test_connected(self):
        event = VerificationStartedEvent(
            submission_id="SUB-1", agent_name="Ben", customer_name="Jane Doe"
        )
        text, blocks = build_verification_started_blocks(event)
        assert text == ":white_check_mark: *Ben* is connected to *Jane Doe*"
        assert "Submission ID: SUB-1" in _all_text(blocks)

    def test_reconnected(self):
        event = VerificationStartedEvent(
            submission_id="SUB-1", agent_name="Ben", customer_name="Jane Doe", reconnected=True
        )
        text, _ = build_verification_started_blocks(event)
        assert text == "*Ben* got connected with *Jane Doe*"

    def test_without_agent_name(self):
        text, _ = build_verification_started_blocks(VerificationStartedEvent(submission_id="SUB-1"))
        assert text == ":white_check_mark: Agent is connected to *Unknown Customer*"


def test_transfer():
    event = TransferEvent(
        submission_id="SUB-1",
        customer_name="Jane Doe",
        buffer_agent_name="Ben",
        licensed_agent_name="Lee",
    )
    text, _ = build_transfer_blocks(event)
    assert text == ":arrow_right: *Ben* has transferred *Jane Doe* to *Lee*."


class TestBufferConnected:
    def test_la_ready_button_carries_ids(self):
        event = BufferConnectedEvent(
            submission_id="SUB-1",
            verification_session_id="vs-1",
            notification_id="n-1",
            buffer_agent_name="Ben",
            customer_name="Jane Doe",
        )
        text, blocks = build_buffer_connected_blocks(event, BASE_URL)

        assert text == ":phone: Retention Call - Ben connected with Jane Doe"
        button = _button(blocks)
        assert button["action_id"] == "la_ready_button"
        assert "sessionId=vs-1" in button["url"]
        assert "notificationId=n-1" in button["url"]

    def test_new_sale_quote_details(self):
        event = BufferConnectedEvent(
            submission_id="SUB-1",
            retention=RetentionDetails(retention_type="new_sale", carrier="Aetna", coverage="10000"),
        )
        body = _all_text(build_buffer_connected_blocks(event, BASE_URL)[1])
        assert "*Retention Type:* New Sale" in body
        assert "- Carrier: Aetna" in body
        assert "Product" not in body

    def test_fixed_payment_with_notes(self):
        event = BufferConnectedEvent(
            submission_id="SUB-1",
            retention=RetentionDetails(retention_type="fixed_payment", notes="new card"),
        )
        body = _all_text(build_buffer_connected_blocks(event, BASE_URL)[1])
        assert "*Retention Type:* Fixed Failed Payment\n*Notes:* new card" in body


def test_la_ready_confirmation():
    event = LaReadyConfirmationEvent(
        submission_id="SUB-1", licensed_agent_name="Lee", customer_name="Jane Doe"
    )
    text, blocks = build_la_ready_blocks(event)
    assert text.startswith(":white_check_mark: *Lee* is ready")
    assert "Buffer Agent: N/A" in _all_text(blocks)


class TestApplicationOutcome:
    def test_submitted_line(self):
        event = ApplicationOutcomeEvent(
            submission_id="SUB-1",
            submitted=True,
            customer_name="Jane Doe",
            agent_name="Lee",
            lead_vendor="Ark Tech",
            carrier="Aetna",
            product_type="Term",
            draft_date="2026-03-15",
            monthly_premium="42.50",
            coverage_amount="10000",
        )
        text, _ = build_application_submitted_blocks(event)
        assert text == (
            ":white_check_mark: Application Submitted! - Jane Doe - Lee - Ark Tech - Aetna - "
            "Term - 2026-03-15 - $42.50 - $10000 - Submitted"
        )

    def test_retention_agent_preferred(self):
        event = ApplicationOutcomeEvent(
            submission_id="SUB-1", submitted=True, agent_name="Lee", retention_agent_name="Rita"
        )
        assert " - Rita - " in build_application_submitted_blocks(event)[0]

    def test_not_submitted_status_emoji(self):
        event = ApplicationOutcomeEvent(
            submission_id="SUB-1", submitted=False, status="DQ", dq_reason="Age"
        )
        text, blocks = build_application_not_submitted_blocks(event)
        assert text == ":no_entry_sign: Application Not Submitted - DQ"
        assert "*Reason:* Age" in _all_text(blocks)

    def test_not_submitted_unknown_status(self):
        event = ApplicationOutcomeEvent(submission_id="SUB-1", submitted=False)
        text, blocks = build_application_not_submitted_blocks(event)
        assert text == ":x: Application Not Submitted - Not Submitted"
        assert "No specific reason provided" in _all_text(blocks)


def test_banking_fix():
    event = BankingFixEvent(
        submission_id="SUB-1", customer_name="Jane Doe", carrier="Aetna", new_draft_date="2026-04-01"
    )
    text, _ = build_banking_fix_blocks(event)
    assert text.startswith(":bank: Failed Payment Fix! - Jane Doe - N/A")
    assert text.endswith("New Draft Date: 2026-04-01")


def test_carrier_requirement():
    event = CarrierRequirementFulfilledEvent(submission_id="SUB-1", carrier="Aetna")
    text, _ = build_carrier_requirement_blocks(event)
    assert "Fulfilled carrier requirement w/ Aetna" in text
