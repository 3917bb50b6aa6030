"""Transition maps for notification delivery and verification-session progress."""

from enum import StrEnum

from handoff.domain.types import SESSION_STATUS_RANK, NotificationStatus, SessionStatus


class NotificationEvent(StrEnum):
    """Events that move a notification through its delivery lifecycle."""

    MARK_SEEN = "mark_seen"
    ACKNOWLEDGE = "acknowledge"
    EXPIRE = "expire"


# All valid (current_status, event) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
NOTIFICATION_TRANSITIONS: dict[tuple[NotificationStatus, str], NotificationStatus] = {
    # From PENDING
    (NotificationStatus.PENDING, NotificationEvent.MARK_SEEN): NotificationStatus.SEEN,
    (NotificationStatus.PENDING, NotificationEvent.ACKNOWLEDGE): NotificationStatus.ACKNOWLEDGED,
    (NotificationStatus.PENDING, NotificationEvent.EXPIRE): NotificationStatus.EXPIRED,
    # From SEEN
    (NotificationStatus.SEEN, NotificationEvent.ACKNOWLEDGE): NotificationStatus.ACKNOWLEDGED,
    (NotificationStatus.SEEN, NotificationEvent.EXPIRE): NotificationStatus.EXPIRED,
}

# Statuses that reject all events and are never surfaced again.
NOTIFICATION_TERMINAL_STATES: frozenset[NotificationStatus] = frozenset(
    {NotificationStatus.ACKNOWLEDGED, NotificationStatus.EXPIRED}
)

# Sessions in these statuses accept no further status change except a repeat.
SESSION_TERMINAL_STATES: frozenset[SessionStatus] = frozenset({SessionStatus.TRANSFERRED})


def is_forward_session_move(current: SessionStatus, target: SessionStatus) -> bool:
    """Return True if *target* does not move a session backwards from *current*.

    Repeating the current status counts as forward so that a retried write
    is accepted as a no-op.
    """
    if current in SESSION_TERMINAL_STATES:
        return target == current
    return SESSION_STATUS_RANK[target] >= SESSION_STATUS_RANK[current]
