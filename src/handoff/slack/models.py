"""Outbound Slack event payloads, channel configuration, and dispatch results.

Each outbound event is its own model, discriminated by ``event_type``, so a
builder or router can never receive a field that event does not carry.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class SlackConfig(BaseModel):
    """Fixed channels and the portal URL used in message links."""

    retention_channel: str = Field(
        default="#retention-team-portal",
        description="Channel for retention-call outcomes",
    )
    callback_portal_channel: str = Field(
        default="#callback-portal",
        description="Channel for buffer-connected and LA-ready messages",
    )
    disconnected_channel: str = Field(
        default="#disconnected-calls",
        description="Channel for every dropped or disconnected call",
    )
    portal_base_url: str = Field(
        default="http://localhost:8080",
        description="Agents portal base URL for buttons and links",
    )


class DispatchError(StrEnum):
    """Why a dispatch did not produce a Slack message."""

    NO_VENDOR_MAPPING = "no_vendor_mapping"
    CHANNEL_NOT_FOUND = "channel_not_found"
    SERVICE_ERROR = "service_error"
    SERVICE_UNREACHABLE = "service_unreachable"
    SKIPPED = "skipped"


class DispatchResult(BaseModel):
    """Outcome of one Slack post attempt."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    event_type: str
    submission_id: str
    channel: str | None = None
    message_ts: str | None = None
    error_code: DispatchError | None = None
    detail: str | None = None


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    submission_id: str
    customer_name: str | None = None
    lead_vendor: str | None = None


class RetentionDetails(BaseModel):
    """What kind of retention call a buffer agent picked up."""

    model_config = ConfigDict(frozen=True)

    retention_type: Literal["new_sale", "fixed_payment", "carrier_requirements"]
    notes: str | None = None
    carrier: str | None = None
    product: str | None = None
    coverage: str | None = None
    monthly_premium: str | None = None


class CallbackRequestEvent(_Event):
    event_type: Literal["callback_request"] = "callback_request"
    request_type: str
    notes: str | None = None
    carrier: str | None = None
    state: str | None = None


class CallDisconnectedEvent(_Event):
    """A call that dropped (reconnect needed) or disconnected for good."""

    event_type: Literal["call_disconnected"] = "call_disconnected"
    dropped: bool = False
    status: str | None = None
    phone_number: str | None = None
    email: str | None = None
    agent_name: str | None = None
    buffer_agent_name: str | None = None
    notes: str | None = None


class VerificationStartedEvent(_Event):
    event_type: Literal["verification_started"] = "verification_started"
    agent_name: str | None = None
    reconnected: bool = False


class TransferEvent(_Event):
    event_type: Literal["transfer_to_la"] = "transfer_to_la"
    buffer_agent_name: str | None = None
    licensed_agent_name: str | None = None


class BufferConnectedEvent(_Event):
    event_type: Literal["buffer_connected"] = "buffer_connected"
    verification_session_id: str | None = None
    notification_id: str | None = None
    buffer_agent_name: str | None = None
    retention: RetentionDetails | None = None


class LaReadyConfirmationEvent(_Event):
    event_type: Literal["la_ready"] = "la_ready"
    licensed_agent_name: str | None = None
    buffer_agent_name: str | None = None


class ApplicationOutcomeEvent(_Event):
    """Result of the call: application submitted, or not and why."""

    event_type: Literal["application_outcome"] = "application_outcome"
    submitted: bool
    is_retention_call: bool = False
    status: str | None = None
    dq_reason: str | None = None
    notes: str | None = None
    phone_number: str | None = None
    email: str | None = None
    agent_name: str | None = None
    buffer_agent_name: str | None = None
    retention_agent_name: str | None = None
    carrier: str | None = None
    product_type: str | None = None
    draft_date: str | None = None
    monthly_premium: str | None = None
    coverage_amount: str | None = None


class BankingFixEvent(_Event):
    event_type: Literal["banking_fix"] = "banking_fix"
    is_retention_call: bool = False
    agent_name: str | None = None
    carrier: str | None = None
    new_draft_date: str | None = None


class CarrierRequirementFulfilledEvent(_Event):
    event_type: Literal["carrier_requirement_fulfilled"] = "carrier_requirement_fulfilled"
    is_retention_call: bool = False
    agent_name: str | None = None
    carrier: str | None = None


OutboundEvent = Annotated[
    CallbackRequestEvent
    | CallDisconnectedEvent
    | VerificationStartedEvent
    | TransferEvent
    | BufferConnectedEvent
    | LaReadyConfirmationEvent
    | ApplicationOutcomeEvent
    | BankingFixEvent
    | CarrierRequirementFulfilledEvent,
    Field(discriminator="event_type"),
]
