"""Lifecycle of retention-call notifications between buffer and licensed agents.

A notification is created ``pending``, may be marked ``seen``, and ends
``acknowledged`` or ``expired``.  Hand-off webhooks are delivered at least
once, so creation is idempotent and the buffer agent's popup is driven by a
gate query on the stored status rather than by raw events.

Expiry policy for ``la_ready``:

* A repeat signal from the same licensed agent for the same session and
  buffer agent returns the existing row.
* A signal from a different licensed agent expires the older open row and
  creates a new one.
* Rows left open longer than the TTL are expired before the gate query runs.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from urllib.parse import urlencode

import structlog
from pydantic import BaseModel, ConfigDict, Field

from handoff.domain.errors import (
    DuplicateRecordError,
    InvalidTransitionError,
    RecordNotFoundError,
    StoreError,
)
from handoff.domain.models import RetentionCallNotification
from handoff.domain.types import NotificationStatus, NotificationType
from handoff.observability.metrics import NOTIFICATIONS_TOTAL
from handoff.state_machine.transitions import NotificationEvent
from handoff.store.accessor import VerificationStore

logger = structlog.get_logger()

CALL_RESULT_PATH = "/call-result-update"
DEFAULT_LA_READY_TTL_SECONDS = 900

_OPEN_STATUSES = (NotificationStatus.PENDING, NotificationStatus.SEEN)


def call_result_link(submission_id: str) -> str:
    """Return the in-portal path where the call result for *submission_id* is recorded."""
    return f"{CALL_RESULT_PATH}?{urlencode({'submissionId': submission_id})}"


class LaReadyResult(BaseModel):
    """Outcome of :meth:`NotificationLifecycleManager.signal_la_ready`."""

    model_config = ConfigDict(frozen=True)

    notification: RetentionCallNotification
    created: bool
    superseded_ids: list[str] = Field(default_factory=list)


def _count(notification: RetentionCallNotification) -> None:
    NOTIFICATIONS_TOTAL.labels(
        notification_type=notification.notification_type,
        status=notification.status,
    ).inc()


class NotificationLifecycleManager:
    """Creates notifications and moves them through their lifecycle.

    Args:
        store: The verification store.
        la_ready_ttl_seconds: How long an ``la_ready`` row may stay open.
    """

    def __init__(
        self,
        store: VerificationStore,
        *,
        la_ready_ttl_seconds: int = DEFAULT_LA_READY_TTL_SECONDS,
    ) -> None:
        self._store = store
        self._ttl = timedelta(seconds=la_ready_ttl_seconds)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_buffer_connected(
        self,
        *,
        submission_id: str,
        verification_session_id: str | None,
        buffer_agent_id: str,
        buffer_agent_name: str | None = None,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
    ) -> RetentionCallNotification:
        """Record that a buffer agent is on a retention call.

        A repeat for the same session and buffer agent returns the open row.
        """
        with self._store.exclusive():
            existing = self._store.find_notifications(
                verification_session_id=verification_session_id,
                submission_id=submission_id,
                buffer_agent_id=buffer_agent_id,
                notification_type=NotificationType.BUFFER_CONNECTED,
                statuses=_OPEN_STATUSES,
                limit=1,
            )
            if existing:
                logger.info("notification_duplicate_ignored", notification_id=existing[0].id)
                return existing[0]

            notification = self._store.insert_notification(
                verification_session_id=verification_session_id,
                submission_id=submission_id,
                notification_type=NotificationType.BUFFER_CONNECTED,
                buffer_agent_id=buffer_agent_id,
                buffer_agent_name=buffer_agent_name,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
            )

        _count(notification)
        logger.info(
            "notification_created",
            notification_id=notification.id,
            notification_type=notification.notification_type,
            submission_id=submission_id,
        )
        return notification

    def signal_la_ready(
        self,
        *,
        submission_id: str,
        verification_session_id: str | None,
        buffer_agent_id: str,
        licensed_agent_id: str,
        buffer_agent_name: str | None = None,
        licensed_agent_name: str | None = None,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
    ) -> LaReadyResult:
        """Tell the buffer agent a licensed agent is ready to take the call.

        Idempotent under duplicate delivery; see the module docstring for
        how older rows are superseded.  The session's open
        ``buffer_connected`` notification is acknowledged and stamped with
        the licensed agent.
        """
        now = self._store.now()
        with self._store.exclusive():
            self.expire_stale(now, buffer_agent_id=buffer_agent_id)

            prior = self._store.find_notifications(
                verification_session_id=verification_session_id,
                submission_id=submission_id,
                buffer_agent_id=buffer_agent_id,
                notification_type=NotificationType.LA_READY,
                statuses=(*_OPEN_STATUSES, NotificationStatus.ACKNOWLEDGED),
            )
            for notification in prior:
                if notification.licensed_agent_id == licensed_agent_id:
                    logger.info(
                        "la_ready_duplicate_ignored",
                        notification_id=notification.id,
                        submission_id=submission_id,
                    )
                    return LaReadyResult(notification=notification, created=False)

            superseded: list[str] = []
            for notification in prior:
                if notification.status in _OPEN_STATUSES:
                    self._transition(notification.id, NotificationEvent.EXPIRE)
                    superseded.append(notification.id)

            for connected in self._store.find_notifications(
                verification_session_id=verification_session_id,
                submission_id=submission_id,
                notification_type=NotificationType.BUFFER_CONNECTED,
                statuses=_OPEN_STATUSES,
            ):
                self._transition(
                    connected.id,
                    NotificationEvent.ACKNOWLEDGE,
                    extra_fields={
                        "licensed_agent_id": licensed_agent_id,
                        "licensed_agent_name": licensed_agent_name,
                        "la_ready_at": now,
                    },
                )

            try:
                notification = self._store.insert_notification(
                    verification_session_id=verification_session_id,
                    submission_id=submission_id,
                    notification_type=NotificationType.LA_READY,
                    buffer_agent_id=buffer_agent_id,
                    buffer_agent_name=buffer_agent_name,
                    licensed_agent_id=licensed_agent_id,
                    licensed_agent_name=licensed_agent_name,
                    customer_name=customer_name,
                    lead_vendor=lead_vendor,
                    la_ready_at=now,
                )
            except DuplicateRecordError:
                # Another writer on the same database got its row in first.
                existing = self._store.find_notifications(
                    verification_session_id=verification_session_id,
                    buffer_agent_id=buffer_agent_id,
                    notification_type=NotificationType.LA_READY,
                    statuses=(NotificationStatus.PENDING,),
                    limit=1,
                )
                if not existing:
                    raise
                logger.info(
                    "la_ready_duplicate_ignored",
                    notification_id=existing[0].id,
                    submission_id=submission_id,
                )
                return LaReadyResult(
                    notification=existing[0], created=False, superseded_ids=superseded
                )

        _count(notification)
        logger.info(
            "notification_created",
            notification_id=notification.id,
            notification_type=notification.notification_type,
            submission_id=submission_id,
            superseded=superseded,
        )
        return LaReadyResult(notification=notification, created=True, superseded_ids=superseded)

    def create_transfer_initiated(
        self,
        *,
        submission_id: str,
        verification_session_id: str | None,
        buffer_agent_id: str | None,
        licensed_agent_id: str | None,
        buffer_agent_name: str | None = None,
        licensed_agent_name: str | None = None,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
    ) -> RetentionCallNotification:
        """Record that the call is being transferred to the licensed agent."""
        notification = self._store.insert_notification(
            verification_session_id=verification_session_id,
            submission_id=submission_id,
            notification_type=NotificationType.TRANSFER_INITIATED,
            buffer_agent_id=buffer_agent_id,
            buffer_agent_name=buffer_agent_name,
            licensed_agent_id=licensed_agent_id,
            licensed_agent_name=licensed_agent_name,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
        )
        _count(notification)
        logger.info(
            "notification_created",
            notification_id=notification.id,
            notification_type=notification.notification_type,
            submission_id=submission_id,
        )
        return notification

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_seen(self, notification_id: str) -> RetentionCallNotification | None:
        """Mark a notification seen.  Best-effort: failures are logged, not raised.

        Returns:
            The updated notification, or None if it could not be marked.
        """
        try:
            return self._transition(notification_id, NotificationEvent.MARK_SEEN)
        except (InvalidTransitionError, RecordNotFoundError, StoreError) as exc:
            logger.info("notification_mark_seen_skipped", notification_id=notification_id, reason=str(exc))
            return None

    def acknowledge(self, notification_id: str) -> str:
        """Acknowledge a notification and return where the agent should go next.

        Acknowledging an already acknowledged notification returns the same
        link, so double clicks and replays are harmless.

        Returns:
            The call-result path for the notification's submission.

        Raises:
            RecordNotFoundError: If no such notification exists.
            InvalidTransitionError: If the notification has expired.
        """
        try:
            notification = self._transition(notification_id, NotificationEvent.ACKNOWLEDGE)
        except InvalidTransitionError:
            notification = self._store.get_notification(notification_id)
            if notification.status != NotificationStatus.ACKNOWLEDGED:
                raise
            logger.info("notification_already_acknowledged", notification_id=notification_id)

        return call_result_link(notification.submission_id)

    def expire(self, notification_id: str) -> RetentionCallNotification:
        """Expire an open notification.

        Raises:
            RecordNotFoundError: If no such notification exists.
            InvalidTransitionError: If the notification is already terminal.
        """
        return self._transition(notification_id, NotificationEvent.EXPIRE)

    def expire_stale(
        self,
        now: datetime | None = None,
        *,
        buffer_agent_id: str | None = None,
    ) -> list[str]:
        """Expire ``la_ready`` rows that have stayed open longer than the TTL.

        Args:
            now: Reference time (defaults to the store clock).
            buffer_agent_id: Only expire rows for this recipient.

        Returns:
            Ids of the rows that were expired.
        """
        cutoff = (now or self._store.now()) - self._ttl
        expired: list[str] = []
        with self._store.exclusive():
            for notification in self._store.find_notifications(
                buffer_agent_id=buffer_agent_id,
                notification_type=NotificationType.LA_READY,
                statuses=_OPEN_STATUSES,
                created_before=cutoff,
            ):
                self._transition(notification.id, NotificationEvent.EXPIRE)
                expired.append(notification.id)

        if expired:
            logger.info("notifications_expired", count=len(expired), notification_ids=expired)
        return expired

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pending_popup(self, recipient_id: str) -> RetentionCallNotification | None:
        """Return the newest pending ``la_ready`` for a buffer agent, if any.

        Stale rows are expired first, so a TTL-expired signal never pops up.
        """
        self.expire_stale(buffer_agent_id=recipient_id)
        rows = self._store.find_notifications(
            buffer_agent_id=recipient_id,
            notification_type=NotificationType.LA_READY,
            statuses=(NotificationStatus.PENDING,),
            limit=1,
        )
        return rows[0] if rows else None

    def get(self, notification_id: str) -> RetentionCallNotification:
        """Return the stored notification."""
        return self._store.get_notification(notification_id)

    def _transition(
        self,
        notification_id: str,
        event: NotificationEvent,
        extra_fields: dict[str, object] | None = None,
    ) -> RetentionCallNotification:
        notification = self._store.transition_notification(notification_id, event, extra_fields)
        _count(notification)
        logger.info(
            "notification_transitioned",
            notification_id=notification_id,
            event=str(event),
            status=notification.status,
        )
        return notification
