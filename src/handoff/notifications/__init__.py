"""Retention-call notification lifecycle and the buffer-agent popup watcher."""

from handoff.notifications.manager import (
    CALL_RESULT_PATH,
    LaReadyResult,
    NotificationLifecycleManager,
    call_result_link,
)
from handoff.notifications.watcher import NotificationWatcher

__all__ = [
    "CALL_RESULT_PATH",
    "LaReadyResult",
    "NotificationLifecycleManager",
    "NotificationWatcher",
    "call_result_link",
]
