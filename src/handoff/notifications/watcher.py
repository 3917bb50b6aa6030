"""Buffer-agent side of the ``la_ready`` hand-off popup."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable

import structlog
from pydantic import ValidationError

from handoff.domain.errors import HandoffError, RecordNotFoundError
from handoff.domain.models import ChangeEvent, RetentionCallNotification
from handoff.domain.types import ChangeKind, NotificationStatus, NotificationType
from handoff.notifications.manager import NotificationLifecycleManager
from handoff.store.accessor import NOTIFICATIONS
from handoff.store.changefeed import ChangeFeed, Subscription

logger = structlog.get_logger()

AlertCallback = Callable[[RetentionCallNotification], Awaitable[None] | None]


class NotificationWatcher:
    """Alerts one buffer agent when a licensed agent is ready for the call.

    On start the gate query runs once, so a pending signal survives a page
    reload.  After that, inserted rows for the recipient are checked against
    the stored status and an id is never alerted twice, which absorbs
    replayed or duplicated inserts.

    Args:
        manager: Notification lifecycle manager (gate query and acknowledge).
        feed: Change feed the store publishes on.
        recipient_id: The buffer agent's user id.
        on_alert: Called with the notification to show, sync or async.
    """

    def __init__(
        self,
        manager: NotificationLifecycleManager,
        feed: ChangeFeed,
        recipient_id: str,
        on_alert: AlertCallback,
    ) -> None:
        self._manager = manager
        self._feed = feed
        self.recipient_id = recipient_id
        self._on_alert = on_alert
        self._alerted: set[str] = set()
        self.current: RetentionCallNotification | None = None
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Subscribe to inserts for the recipient and surface any pending signal."""
        if self._subscription is not None:
            return
        self._subscription = self._feed.subscribe(
            NOTIFICATIONS,
            {"buffer_agent_id": self.recipient_id},
            kinds=[ChangeKind.INSERT],
        )
        self._task = asyncio.create_task(self._run(self._subscription))

        pending = await asyncio.to_thread(self._manager.pending_popup, self.recipient_id)
        if pending is not None:
            await self._surface(pending)

    async def stop(self) -> None:
        """Release the subscription."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

    async def __aenter__(self) -> NotificationWatcher:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def handle_event(self, event: ChangeEvent) -> bool:
        """Alert for *event* if it is a new, still-pending ``la_ready`` row.

        Returns:
            True if an alert was raised.
        """
        if event.kind != ChangeKind.INSERT or event.new is None:
            return False

        notification = RetentionCallNotification.model_validate(event.new)
        if notification.notification_type != NotificationType.LA_READY:
            return False
        if notification.status != NotificationStatus.PENDING:
            return False
        if notification.id in self._alerted:
            logger.debug("notification_alert_duplicate", notification_id=notification.id)
            return False

        try:
            stored = await asyncio.to_thread(self._manager.get, notification.id)
        except RecordNotFoundError:
            return False
        if stored.status != NotificationStatus.PENDING:
            logger.info(
                "notification_alert_stale",
                notification_id=notification.id,
                status=stored.status,
            )
            return False

        return await self._surface(stored)

    async def acknowledge(self) -> str | None:
        """Acknowledge the popup on screen and return where to navigate.

        Returns:
            The call-result path, or None if nothing is showing.
        """
        if self.current is None:
            return None
        link = await asyncio.to_thread(self._manager.acknowledge, self.current.id)
        self.current = None
        return link

    async def dismiss(self) -> None:
        """Close the popup without acting; the row is marked seen."""
        if self.current is None:
            return
        await asyncio.to_thread(self._manager.mark_seen, self.current.id)
        self.current = None

    async def _run(self, subscription: Subscription) -> None:
        try:
            async for event in subscription:
                try:
                    await self.handle_event(event)
                except (HandoffError, ValidationError) as exc:
                    logger.warning(
                        "notification_event_skipped",
                        recipient_id=self.recipient_id,
                        seq=event.seq,
                        error=str(exc),
                    )
        finally:
            subscription.close()

    async def _surface(self, notification: RetentionCallNotification) -> bool:
        if notification.id in self._alerted:
            return False
        self._alerted.add(notification.id)
        self.current = notification
        logger.info(
            "notification_alerted",
            notification_id=notification.id,
            recipient_id=self.recipient_id,
        )
        result = self._on_alert(notification)
        if inspect.isawaitable(result):
            await result
        return True
