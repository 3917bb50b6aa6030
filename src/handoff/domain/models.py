"""Pydantic v2 models for the records shared by both agent screens.

Rows are immutable snapshots of what the store committed.  Local views never
edit a row in place; they replace it with the next authoritative snapshot.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from handoff.domain.types import (
    ChangeKind,
    NotificationStatus,
    NotificationType,
    SessionStatus,
)


class VerificationSession(BaseModel):
    """One lead under active verification and hand-off."""

    model_config = ConfigDict(frozen=True)

    id: str
    submission_id: str
    status: SessionStatus = SessionStatus.NOT_STARTED
    buffer_agent_id: str | None = None
    licensed_agent_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    transferred_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def transferred_requires_completed(self) -> VerificationSession:
        """A transfer timestamp is only meaningful once verification completed."""
        if self.transferred_at is not None and self.completed_at is None:
            raise ValueError("transferred_at is set but completed_at is not")
        return self


class VerificationItem(BaseModel):
    """One reviewable field of a lead, owned by a session."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    field_name: str
    original_value: str | None = None
    verified_value: str | None = None
    is_verified: bool = False
    is_modified: bool = False
    notes: str | None = None
    verified_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def compute_is_modified(original_value: str | None, verified_value: str | None) -> bool:
        """Return whether a reviewed value differs from what the lead originally had."""
        if verified_value is None:
            return False
        return verified_value != original_value


class RetentionCallNotification(BaseModel):
    """A hand-off signal between a buffer agent and a licensed agent.

    Display names and customer/vendor labels are captured at creation so the
    notification stays readable even if the lead is edited afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    verification_session_id: str | None = None
    submission_id: str
    notification_type: NotificationType
    status: NotificationStatus = NotificationStatus.PENDING
    buffer_agent_id: str | None = None
    buffer_agent_name: str | None = None
    licensed_agent_id: str | None = None
    licensed_agent_name: str | None = None
    customer_name: str | None = None
    lead_vendor: str | None = None
    la_ready_at: datetime | None = None
    seen_at: datetime | None = None
    acknowledged_at: datetime | None = None
    expired_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Lead(BaseModel):
    """Read-only projection of the lead record owned by the CRM."""

    model_config = ConfigDict(frozen=True, extra="allow")

    submission_id: str
    customer_full_name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    lead_vendor: str | None = None


class AgentProfile(BaseModel):
    """Display information for an agent from the directory."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str | None = None


class CallbackRequest(BaseModel):
    """A callback requested by a call center for one of its leads."""

    model_config = ConfigDict(frozen=True)

    id: str
    submission_id: str
    request_type: str
    customer_name: str | None = None
    lead_vendor: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


class ChangeEvent(BaseModel):
    """A committed row change as delivered to change-feed subscribers.

    ``seq`` is the store's commit sequence number; events on one table
    arrive in increasing ``seq`` order.
    """

    model_config = ConfigDict(frozen=True)

    table: str
    kind: ChangeKind
    seq: int
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @property
    def record_id(self) -> Any:
        """Return the primary key of the changed row."""
        row = self.new if self.new is not None else self.old
        return None if row is None else row.get("id")
