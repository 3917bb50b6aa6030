"""Call-update log models.

Each event type carries its own declared detail fields.  Free-form notes go
in the open ``annotations`` map that every detail variant has.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from handoff.domain.types import AgentType, CallEventType


class _Details(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    annotations: dict[str, str] = Field(default_factory=dict)


class VerificationStartedDetails(_Details):
    kind: Literal["verification_started"] = "verification_started"
    reconnected: bool = False
    total_fields: int | None = None


class CallPickedUpDetails(_Details):
    kind: Literal["call_picked_up"] = "call_picked_up"
    previous_agent_id: str | None = None


class CallClaimedDetails(_Details):
    kind: Literal["call_claimed"] = "call_claimed"
    claimed_from_agent_id: str | None = None
    claim_reason: str | None = None


class CallDroppedDetails(_Details):
    kind: Literal["call_dropped"] = "call_dropped"
    reason: str | None = None
    progress_percent: int | None = None


class CallDisconnectedDetails(_Details):
    kind: Literal["call_disconnected"] = "call_disconnected"
    reason: str | None = None
    progress_percent: int | None = None


class TransferredToLaDetails(_Details):
    kind: Literal["transferred_to_la"] = "transferred_to_la"
    licensed_agent_id: str | None = None
    licensed_agent_name: str | None = None


class TransferredToLicensedAgentDetails(_Details):
    kind: Literal["transferred_to_licensed_agent"] = "transferred_to_licensed_agent"
    licensed_agent_id: str | None = None
    licensed_agent_name: str | None = None


class ApplicationSubmittedDetails(_Details):
    kind: Literal["application_submitted"] = "application_submitted"
    carrier: str | None = None
    product_type: str | None = None
    monthly_premium: str | None = None
    coverage_amount: str | None = None


class ApplicationNotSubmittedDetails(_Details):
    kind: Literal["application_not_submitted"] = "application_not_submitted"
    status: str | None = None
    reason: str | None = None


EventDetails = Annotated[
    VerificationStartedDetails
    | CallPickedUpDetails
    | CallClaimedDetails
    | CallDroppedDetails
    | CallDisconnectedDetails
    | TransferredToLaDetails
    | TransferredToLicensedAgentDetails
    | ApplicationSubmittedDetails
    | ApplicationNotSubmittedDetails,
    Field(discriminator="kind"),
]

_details_adapter: TypeAdapter[EventDetails] = TypeAdapter(EventDetails)


def build_details(event_type: CallEventType | str, **fields: Any) -> EventDetails:
    """Construct the detail variant for *event_type* from keyword fields.

    Raises:
        pydantic.ValidationError: If a field is not declared for that event type.
    """
    return _details_adapter.validate_python({"kind": str(event_type), **fields})


class CallLogEvent(BaseModel):
    """One agent action to append to the call-update log.

    Agent name, customer name and lead vendor may be omitted; the logger
    fills them in from the profile directory and the lead projection.
    """

    model_config = ConfigDict(frozen=True)

    submission_id: str
    agent_id: str
    agent_type: AgentType
    event_type: CallEventType
    agent_name: str | None = None
    event_details: EventDetails | None = None
    session_id: str | None = None
    verification_session_id: str | None = None
    notification_id: str | None = None
    call_result_id: str | None = None
    customer_name: str | None = None
    lead_vendor: str | None = None
    is_retention_call: bool | None = None

    @model_validator(mode="after")
    def details_match_event_type(self) -> CallLogEvent:
        """The details tag must name the same event as ``event_type``."""
        if self.event_details is not None and self.event_details.kind != self.event_type:
            raise ValueError(
                f"event_details kind {self.event_details.kind!r} "
                f"does not match event_type {self.event_type.value!r}"
            )
        return self
