"""Domain enumerations and status orderings for the hand-off coordinator."""

from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle of a verification session."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    READY_FOR_TRANSFER = "ready_for_transfer"
    COMPLETED = "completed"
    TRANSFERRED = "transferred"


class NotificationType(StrEnum):
    """Kinds of retention-call hand-off signals."""

    BUFFER_CONNECTED = "buffer_connected"
    LA_READY = "la_ready"
    TRANSFER_INITIATED = "transfer_initiated"


class NotificationStatus(StrEnum):
    """Delivery states of a retention-call notification."""

    PENDING = "pending"
    SEEN = "seen"
    ACKNOWLEDGED = "acknowledged"
    EXPIRED = "expired"


class AgentType(StrEnum):
    """Which side of the hand-off an agent is on."""

    BUFFER = "buffer"
    LICENSED = "licensed"


class CallEventType(StrEnum):
    """Discrete agent actions recorded in the call-update log."""

    VERIFICATION_STARTED = "verification_started"
    CALL_PICKED_UP = "call_picked_up"
    CALL_CLAIMED = "call_claimed"
    CALL_DROPPED = "call_dropped"
    CALL_DISCONNECTED = "call_disconnected"
    TRANSFERRED_TO_LA = "transferred_to_la"
    TRANSFERRED_TO_LICENSED_AGENT = "transferred_to_licensed_agent"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_NOT_SUBMITTED = "application_not_submitted"


class ChangeKind(StrEnum):
    """Row-level change kinds emitted by the change feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ProgressBand(StrEnum):
    """Banded verification progress labels shown on both agent screens."""

    JUST_STARTED = "Just Started"
    IN_PROGRESS = "In Progress"
    NEARLY_COMPLETE = "Nearly Complete"
    READY_FOR_TRANSFER = "Ready for Transfer"


# Forward-only ordering.  COMPLETED and TRANSFERRED share the final tier but
# COMPLETED may still advance to TRANSFERRED.
SESSION_STATUS_RANK: dict[SessionStatus, int] = {
    SessionStatus.NOT_STARTED: 0,
    SessionStatus.IN_PROGRESS: 1,
    SessionStatus.READY_FOR_TRANSFER: 2,
    SessionStatus.COMPLETED: 3,
    SessionStatus.TRANSFERRED: 4,
}

# Lead fields reviewed during verification, in display order.
DEFAULT_VERIFICATION_FIELDS: tuple[str, ...] = (
    "customer_full_name",
    "street_address",
    "city",
    "state",
    "zip_code",
    "phone_number",
    "email",
    "date_of_birth",
    "social_security",
    "beneficiary_information",
    "carrier",
    "product_type",
    "coverage_amount",
    "monthly_premium",
    "draft_date",
    "institution_name",
    "beneficiary_routing",
    "beneficiary_account",
)
