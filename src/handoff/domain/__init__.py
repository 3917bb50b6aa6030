"""Domain types, models, and errors for the hand-off coordinator."""

from handoff.domain.errors import (
    DuplicateRecordError,
    HandoffError,
    InvalidTransitionError,
    RecordNotFoundError,
    StoreError,
)
from handoff.domain.models import (
    AgentProfile,
    CallbackRequest,
    ChangeEvent,
    Lead,
    RetentionCallNotification,
    VerificationItem,
    VerificationSession,
)
from handoff.domain.types import (
    DEFAULT_VERIFICATION_FIELDS,
    SESSION_STATUS_RANK,
    AgentType,
    CallEventType,
    ChangeKind,
    NotificationStatus,
    NotificationType,
    ProgressBand,
    SessionStatus,
)

__all__ = [
    "DEFAULT_VERIFICATION_FIELDS",
    "SESSION_STATUS_RANK",
    "AgentProfile",
    "AgentType",
    "CallEventType",
    "CallbackRequest",
    "ChangeEvent",
    "ChangeKind",
    "DuplicateRecordError",
    "HandoffError",
    "InvalidTransitionError",
    "Lead",
    "NotificationStatus",
    "NotificationType",
    "ProgressBand",
    "RecordNotFoundError",
    "RetentionCallNotification",
    "SessionStatus",
    "StoreError",
    "VerificationItem",
    "VerificationSession",
]
