"""Block Kit message builders for hand-off notifications.

Pure functions that turn an outbound event into Block Kit block dicts plus a
plain-text fallback.  They have no side effects and are easy to test.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

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

UNKNOWN_CUSTOMER = "Unknown Customer"

# Status emoji for applications that were not submitted.
_NOT_SUBMITTED_EMOJI: dict[str, str] = {
    "DQ": ":no_entry_sign:",
    "Needs callback": ":telephone_receiver:",
    "Not Interested": ":no_good:",
    "Future Submission Date": ":date:",
}

Message = tuple[str, list[dict[str, Any]]]


def call_result_url(portal_base_url: str, submission_id: str, **extra: str | None) -> str:
    """Return the absolute call-result page URL for a submission."""
    params = {"submissionId": submission_id}
    params.update({key: value for key, value in extra.items() if value})
    return f"{portal_base_url.rstrip('/')}/call-result-update?{urlencode(params)}"


def _context(text: str) -> dict[str, Any]:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": text}]}


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _text_only(text: str, submission_id: str) -> Message:
    return text, [_section(text), _context(f"Submission ID: {submission_id}")]


def build_callback_request_blocks(event: CallbackRequestEvent, portal_base_url: str) -> Message:
    """Build the vendor-channel message for a callback request."""
    text = (
        f":phone: *Callback Request from {event.lead_vendor}*\n"
        f"*{event.request_type}* - {event.customer_name}"
    )
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Callback Request", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Request Type:*\n{event.request_type}"},
                {"type": "mrkdwn", "text": f"*Call Center:*\n{event.lead_vendor}"},
                {"type": "mrkdwn", "text": f"*Customer Name:*\n{event.customer_name or 'N/A'}"},
                {"type": "mrkdwn", "text": f"*Carrier:*\n{event.carrier or 'N/A'}"},
                {"type": "mrkdwn", "text": f"*State:*\n{event.state or 'N/A'}"},
            ],
        },
        _section(f"*Notes:*\n{event.notes or 'No additional notes'}"),
        {"type": "divider"},
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Update Call Result", "emoji": True},
                    "url": call_result_url(portal_base_url, event.submission_id),
                    "style": "primary",
                    "action_id": "update_call_result",
                }
            ],
        },
        _context(f"Submission ID: {event.submission_id}"),
    ]
    return text, blocks


def build_disconnected_blocks(event: CallDisconnectedEvent) -> Message:
    """Build the disconnected-calls channel alert for a dropped or lost call."""
    customer = event.customer_name or UNKNOWN_CUSTOMER
    if event.dropped:
        emoji, label = ":telephone_receiver:", "Dropped Call"
        default_status = "Dropped"
    else:
        emoji, label = ":x:", "Disconnected Call"
        default_status = "Disconnected"

    text = f"{emoji} {label} - {customer}"
    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": text}},
        _section(
            f"*Customer:* {customer}\n"
            f"*Phone:* {event.phone_number or 'No phone number'}\n"
            f"*Email:* {event.email or 'No email'}"
        ),
        _section(
            f"*Status:* {event.status or default_status}\n"
            f"*Lead Vendor:* {event.lead_vendor or 'N/A'}"
        ),
        _section(
            f"*Agent:* {event.agent_name or 'N/A'}\n"
            f"*Buffer Agent:* {event.buffer_agent_name or 'N/A'}"
        ),
        _section(f"*Notes:*\n{event.notes or 'No additional notes'}"),
        _context(f"Submission ID: {event.submission_id}"),
    ]
    return text, blocks


def build_call_dropped_center_blocks(event: CallDisconnectedEvent) -> Message:
    """Build the vendor-channel notice that a call dropped and needs a reconnect."""
    customer = event.customer_name or UNKNOWN_CUSTOMER
    return _text_only(
        f":red_circle: Call with *{customer}* dropped. Need to reconnect.",
        event.submission_id,
    )


def build_verification_started_blocks(event: VerificationStartedEvent) -> Message:
    """Build the vendor-channel notice that an agent is on the line."""
    customer = event.customer_name or UNKNOWN_CUSTOMER
    if event.reconnected:
        text = f"*{event.agent_name or 'Agent'}* got connected with *{customer}*"
    elif event.agent_name and event.customer_name:
        text = f":white_check_mark: *{event.agent_name}* is connected to *{customer}*"
    else:
        text = f":white_check_mark: Agent is connected to *{customer}*"
    return _text_only(text, event.submission_id)


def build_transfer_blocks(event: TransferEvent) -> Message:
    """Build the vendor-channel notice that the call went to a licensed agent."""
    text = (
        f":arrow_right: *{event.buffer_agent_name or 'Buffer Agent'}* has transferred "
        f"*{event.customer_name or UNKNOWN_CUSTOMER}* to "
        f"*{event.licensed_agent_name or 'Licensed Agent'}*."
    )
    return _text_only(text, event.submission_id)


def _retention_details_text(details: RetentionDetails) -> str:
    if details.retention_type == "new_sale":
        lines = ["*Retention Type:* New Sale"]
        quote = [
            ("Carrier", details.carrier),
            ("Product", details.product),
            ("Coverage", details.coverage),
            ("Monthly Premium", details.monthly_premium),
        ]
        if any(value for _, value in quote):
            lines.append("*Quote Details:*")
            lines.extend(f"- {label}: {value}" for label, value in quote if value)
        return "\n".join(lines)

    label = (
        "Fixed Failed Payment"
        if details.retention_type == "fixed_payment"
        else "Fulfilling Carrier Requirements"
    )
    text = f"*Retention Type:* {label}"
    if details.notes:
        text += f"\n*Notes:* {details.notes}"
    return text


def build_buffer_connected_blocks(event: BufferConnectedEvent, portal_base_url: str) -> Message:
    """Build the callback-portal message with the LA Ready button.

    The button opens the call-result page carrying the session and
    notification ids, where the licensed agent signals they are ready.
    """
    text = (
        f":phone: Retention Call - {event.buffer_agent_name or 'Agent'} "
        f"connected with {event.customer_name or UNKNOWN_CUSTOMER}"
    )
    la_ready_url = call_result_url(
        portal_base_url,
        event.submission_id,
        sessionId=event.verification_session_id,
        notificationId=event.notification_id,
    )
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Retention Call - Agent Connected", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Retention Agent:*\n{event.buffer_agent_name or 'N/A'}"},
                {"type": "mrkdwn", "text": f"*Customer:*\n{event.customer_name or 'N/A'}"},
                {"type": "mrkdwn", "text": f"*Lead Vendor:*\n{event.lead_vendor or 'N/A'}"},
                {"type": "mrkdwn", "text": f"*Submission ID:*\n{event.submission_id}"},
            ],
        },
    ]

    if event.retention is not None:
        blocks.append(_section(_retention_details_text(event.retention)))

    blocks.extend(
        [
            _section("*A Licensed Agent needs to click the button below when ready to take the call:*"),
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "LA - Ready", "emoji": True},
                        "style": "primary",
                        "url": la_ready_url,
                        "action_id": "la_ready_button",
                    }
                ],
            },
            _context(
                "Click the button above to notify the retention agent that you're "
                "ready to receive the transfer."
            ),
        ]
    )
    return text, blocks


def build_la_ready_blocks(event: LaReadyConfirmationEvent) -> Message:
    """Build the callback-portal confirmation that a licensed agent is ready."""
    text = (
        f":white_check_mark: *{event.licensed_agent_name or 'Licensed Agent'}* is ready "
        f"to take the call for *{event.customer_name or UNKNOWN_CUSTOMER}*"
    )
    blocks = [
        _section(text),
        _context(
            f"Buffer Agent: {event.buffer_agent_name or 'N/A'} | "
            f"Submission ID: {event.submission_id}"
        ),
    ]
    return text, blocks


def build_application_submitted_blocks(event: ApplicationOutcomeEvent) -> Message:
    """Build the retention-channel line for a submitted retention application."""
    agent = event.retention_agent_name or event.agent_name or "N/A"
    text = (
        f":white_check_mark: Application Submitted! - {event.customer_name or 'N/A'} - "
        f"{agent} - {event.lead_vendor or 'N/A'} - {event.carrier or 'N/A'} - "
        f"{event.product_type or 'N/A'} - {event.draft_date or 'N/A'} - "
        f"${event.monthly_premium or '0.00'} - ${event.coverage_amount or '0'} - Submitted"
    )
    return text, [_section(text)]


def build_application_not_submitted_blocks(event: ApplicationOutcomeEvent) -> Message:
    """Build the vendor-channel notice for an application that was not submitted."""
    status = event.status or "Not Submitted"
    emoji = _NOT_SUBMITTED_EMOJI.get(status, ":x:")
    customer = event.customer_name or UNKNOWN_CUSTOMER
    text = f"{emoji} Application Not Submitted - {status}"
    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": text}},
        _section(
            f"*Customer:* {customer}\n"
            f"*Phone:* {event.phone_number or 'No phone number'}\n"
            f"*Email:* {event.email or 'No email'}\n"
            f"*Submission ID:* {event.submission_id}"
        ),
        _section(
            f"*Status:* {status}\n*Reason:* {event.dq_reason or 'No specific reason provided'}"
        ),
        _section(f"*Notes:*\n{event.notes or 'No additional notes'}"),
        _context(
            f"Lead Vendor: {event.lead_vendor or 'N/A'} | "
            f"Agent: {event.agent_name or 'N/A'} | "
            f"Buffer: {event.buffer_agent_name or 'N/A'}"
        ),
    ]
    return text, blocks


def build_banking_fix_blocks(event: BankingFixEvent) -> Message:
    """Build the retention-channel line for a fixed failed payment."""
    text = (
        f":bank: Failed Payment Fix! - {event.customer_name or 'N/A'} - "
        f"{event.agent_name or 'N/A'} - Updated banking info/draft date w/ "
        f"{event.carrier or 'N/A'} - New Draft Date: {event.new_draft_date or 'N/A'}"
    )
    return text, [_section(text)]


def build_carrier_requirement_blocks(event: CarrierRequirementFulfilledEvent) -> Message:
    """Build the retention-channel line for a fulfilled carrier requirement."""
    text = (
        f":mega: Fulfilled Carrier Requirement! - {event.customer_name or 'N/A'} - "
        f"{event.agent_name or 'N/A'} - Fulfilled carrier requirement w/ "
        f"{event.carrier or 'N/A'} - Lead will be moved back to pending approval!"
    )
    return text, [_section(text)]
