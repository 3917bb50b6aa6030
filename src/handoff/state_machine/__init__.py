"""Notification and session state machines with transition validation."""

from handoff.state_machine.machine import (
    NotificationStateMachine,
    notification_transition_updates,
    session_status_updates,
)
from handoff.state_machine.transitions import (
    NOTIFICATION_TERMINAL_STATES,
    NOTIFICATION_TRANSITIONS,
    SESSION_TERMINAL_STATES,
    NotificationEvent,
    is_forward_session_move,
)

__all__ = [
    "NOTIFICATION_TERMINAL_STATES",
    "NOTIFICATION_TRANSITIONS",
    "SESSION_TERMINAL_STATES",
    "NotificationEvent",
    "NotificationStateMachine",
    "is_forward_session_move",
    "notification_transition_updates",
    "session_status_updates",
]
