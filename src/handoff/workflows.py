"""Hand-off workflows: one method per agent action.

Every workflow follows the same order.  The primary write goes to the store
first, then the call-update log records the action, then notifications are
created, and finally Slack is told.  Only the primary write can fail the
workflow; logging is best-effort and Slack outcomes come back as
:class:`~handoff.slack.models.DispatchResult` values.
"""

from __future__ import annotations

import asyncio
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from handoff.calllog.logger import CallEventLogger
from handoff.domain.errors import RecordNotFoundError
from handoff.domain.models import (
    CallbackRequest,
    Lead,
    RetentionCallNotification,
    VerificationItem,
    VerificationSession,
)
from handoff.domain.types import AgentType, CallEventType, SessionStatus
from handoff.notifications.manager import LaReadyResult, NotificationLifecycleManager
from handoff.observability.metrics import ACTIVE_SESSIONS
from handoff.progress import Progress, compute_progress
from handoff.slack.dispatcher import OutboundDispatcher
from handoff.slack.models import (
    ApplicationOutcomeEvent,
    BankingFixEvent,
    BufferConnectedEvent,
    CallbackRequestEvent,
    CallDisconnectedEvent,
    CarrierRequirementFulfilledEvent,
    DispatchResult,
    LaReadyConfirmationEvent,
    OutboundEvent,
    RetentionDetails,
    TransferEvent,
    VerificationStartedEvent,
)
from handoff.store.accessor import ITEMS, VerificationStore

logger = structlog.get_logger()

CallOutcome = Literal[
    "submitted",
    "not_submitted",
    "dropped",
    "disconnected",
    "banking_fix",
    "carrier_requirement_fulfilled",
]


class SessionView(BaseModel):
    """A session with its items and freshly computed progress."""

    model_config = ConfigDict(frozen=True)

    session: VerificationSession
    items: list[VerificationItem]
    progress: Progress


class StartedVerification(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: VerificationSession
    items: list[VerificationItem]
    log_id: int | None
    dispatch: list[DispatchResult] = Field(default_factory=list)


class NotificationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    notification: RetentionCallNotification
    created: bool = True
    dispatch: list[DispatchResult] = Field(default_factory=list)


class TransferOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: VerificationSession
    notification: RetentionCallNotification
    log_id: int | None
    dispatch: list[DispatchResult] = Field(default_factory=list)


class CallbackOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    callback: CallbackRequest
    dispatch: list[DispatchResult] = Field(default_factory=list)


class CallResultInput(BaseModel):
    """What an agent reported at the end of a call."""

    submission_id: str
    agent_id: str
    agent_type: AgentType = AgentType.LICENSED
    agent_name: str | None = None
    outcome: CallOutcome
    verification_session_id: str | None = None
    call_result_id: str | None = None
    is_retention_call: bool = False
    status: str | None = None
    dq_reason: str | None = None
    notes: str | None = None
    buffer_agent_name: str | None = None
    carrier: str | None = None
    product_type: str | None = None
    draft_date: str | None = None
    new_draft_date: str | None = None
    monthly_premium: str | None = None
    coverage_amount: str | None = None


class CallResultOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    log_id: int | None
    dispatch: list[DispatchResult] = Field(default_factory=list)


class HandoffCoordinator:
    """Runs hand-off workflows against the store, log, notifications, and Slack.

    Args:
        store: The verification store.
        call_logger: Writer for the call-update log.
        notifications: Notification lifecycle manager.
        dispatcher: Outbound Slack dispatcher.
    """

    def __init__(
        self,
        store: VerificationStore,
        call_logger: CallEventLogger,
        notifications: NotificationLifecycleManager,
        dispatcher: OutboundDispatcher,
    ) -> None:
        self._store = store
        self._call_logger = call_logger
        self.notifications = notifications
        self._dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Verification sessions
    # ------------------------------------------------------------------

    async def start_verification(
        self,
        submission_id: str,
        buffer_agent_id: str,
        *,
        agent_type: AgentType = AgentType.BUFFER,
        agent_name: str | None = None,
        reconnected: bool = False,
        lead: Lead | None = None,
    ) -> StartedVerification:
        """Open a verification session for a lead and mark it in progress."""
        if lead is None:
            lead = await asyncio.to_thread(self._store.get_lead, submission_id)

        session, items = await asyncio.to_thread(
            self._store.create_session,
            submission_id,
            buffer_agent_id=buffer_agent_id,
            lead=lead,
        )
        session = await asyncio.to_thread(
            self._store.update_session_status, session.id, SessionStatus.IN_PROGRESS
        )
        await self._refresh_active_sessions()

        customer_name = lead.customer_full_name if lead else None
        lead_vendor = lead.lead_vendor if lead else None

        log_id = await asyncio.to_thread(
            self._call_logger.log_event,
            CallEventType.VERIFICATION_STARTED,
            submission_id=submission_id,
            agent_id=buffer_agent_id,
            agent_type=agent_type,
            details={"reconnected": reconnected, "total_fields": len(items)},
            agent_name=agent_name,
            session_id=session.id,
            verification_session_id=session.id,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
        )
        dispatch = await self._dispatch(
            VerificationStartedEvent(
                submission_id=submission_id,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
                agent_name=agent_name,
                reconnected=reconnected,
            )
        )
        return StartedVerification(
            session=session, items=items, log_id=log_id, dispatch=dispatch
        )

    async def get_session_view(self, session_id: str) -> SessionView:
        """Return a session, its items, and progress over those items."""
        session = await asyncio.to_thread(self._store.get_session, session_id)
        items = await asyncio.to_thread(self._store.list_items, session_id)
        return SessionView(session=session, items=items, progress=compute_progress(items))

    async def update_item(self, session_id: str, item_id: str, **changes: Any) -> VerificationItem:
        """Write item fields (``is_verified``, ``verified_value``, ``notes``).

        Raises:
            RecordNotFoundError: If the item does not exist in this session.
        """
        item = await asyncio.to_thread(self._store.get_item, item_id)
        if item.session_id != session_id:
            raise RecordNotFoundError(ITEMS, item_id)
        return await asyncio.to_thread(self._store.update_item, item_id, **changes)

    async def advance_session(self, session_id: str, status: SessionStatus) -> VerificationSession:
        """Move a session forward.

        Raises:
            InvalidTransitionError: If *status* would move the session backwards.
        """
        session = await asyncio.to_thread(self._store.update_session_status, session_id, status)
        await self._refresh_active_sessions()
        return session

    # ------------------------------------------------------------------
    # Retention hand-off
    # ------------------------------------------------------------------

    async def buffer_connected(
        self,
        *,
        submission_id: str,
        verification_session_id: str | None,
        buffer_agent_id: str,
        buffer_agent_name: str | None = None,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
        retention: RetentionDetails | None = None,
    ) -> NotificationOutcome:
        """A buffer agent picked up a retention call and needs a licensed agent."""
        customer_name, lead_vendor = await self._lead_labels(
            submission_id, customer_name, lead_vendor
        )
        notification = await asyncio.to_thread(
            self.notifications.create_buffer_connected,
            submission_id=submission_id,
            verification_session_id=verification_session_id,
            buffer_agent_id=buffer_agent_id,
            buffer_agent_name=buffer_agent_name,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
        )

        await asyncio.to_thread(
            self._call_logger.log_event,
            CallEventType.CALL_PICKED_UP,
            submission_id=submission_id,
            agent_id=buffer_agent_id,
            agent_type=AgentType.BUFFER,
            agent_name=buffer_agent_name,
            verification_session_id=verification_session_id,
            notification_id=notification.id,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
            is_retention_call=True,
        )
        dispatch = await self._dispatch(
            BufferConnectedEvent(
                submission_id=submission_id,
                verification_session_id=verification_session_id,
                notification_id=notification.id,
                buffer_agent_name=buffer_agent_name,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
                retention=retention,
            )
        )
        return NotificationOutcome(notification=notification, dispatch=dispatch)

    async def la_ready(
        self,
        *,
        submission_id: str,
        verification_session_id: str | None,
        licensed_agent_id: str,
        licensed_agent_name: str | None = None,
        buffer_agent_id: str | None = None,
        buffer_agent_name: str | None = None,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
    ) -> NotificationOutcome:
        """A licensed agent is ready; tell the buffer agent.

        Duplicate deliveries return the existing notification and post
        nothing to Slack.

        Raises:
            RecordNotFoundError: If the session does not exist.
            ValueError: If no buffer agent can be determined.
        """
        if verification_session_id is not None:
            session = await asyncio.to_thread(self._store.get_session, verification_session_id)
            buffer_agent_id = buffer_agent_id or session.buffer_agent_id
        if not buffer_agent_id:
            msg = "la_ready needs a buffer agent id or a session that has one"
            raise ValueError(msg)

        customer_name, lead_vendor = await self._lead_labels(
            submission_id, customer_name, lead_vendor
        )
        result: LaReadyResult = await asyncio.to_thread(
            self.notifications.signal_la_ready,
            submission_id=submission_id,
            verification_session_id=verification_session_id,
            buffer_agent_id=buffer_agent_id,
            licensed_agent_id=licensed_agent_id,
            buffer_agent_name=buffer_agent_name,
            licensed_agent_name=licensed_agent_name,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
        )
        if not result.created:
            return NotificationOutcome(notification=result.notification, created=False)

        if verification_session_id is not None:
            await asyncio.to_thread(
                self._store.claim_session, verification_session_id, licensed_agent_id
            )

        await asyncio.to_thread(
            self._call_logger.log_event,
            CallEventType.CALL_CLAIMED,
            submission_id=submission_id,
            agent_id=licensed_agent_id,
            agent_type=AgentType.LICENSED,
            details={"claimed_from_agent_id": buffer_agent_id, "claim_reason": "la_ready"},
            agent_name=licensed_agent_name,
            verification_session_id=verification_session_id,
            notification_id=result.notification.id,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
            is_retention_call=True,
        )
        dispatch = await self._dispatch(
            LaReadyConfirmationEvent(
                submission_id=submission_id,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
                licensed_agent_name=licensed_agent_name,
                buffer_agent_name=buffer_agent_name,
            )
        )
        return NotificationOutcome(notification=result.notification, dispatch=dispatch)

    async def transfer(
        self,
        session_id: str,
        *,
        licensed_agent_id: str | None = None,
        buffer_agent_name: str | None = None,
        licensed_agent_name: str | None = None,
    ) -> TransferOutcome:
        """Hand the call from the buffer agent to the licensed agent.

        Transferring an already transferred session repeats the notice
        without changing the session.

        Raises:
            RecordNotFoundError: If the session does not exist.
        """
        session = await asyncio.to_thread(
            self._store.update_session_status, session_id, SessionStatus.TRANSFERRED
        )
        await self._refresh_active_sessions()
        licensed_agent_id = licensed_agent_id or session.licensed_agent_id

        customer_name, lead_vendor = await self._lead_labels(session.submission_id, None, None)
        notification = await asyncio.to_thread(
            self.notifications.create_transfer_initiated,
            submission_id=session.submission_id,
            verification_session_id=session.id,
            buffer_agent_id=session.buffer_agent_id,
            licensed_agent_id=licensed_agent_id,
            buffer_agent_name=buffer_agent_name,
            licensed_agent_name=licensed_agent_name,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
        )
        log_id = await asyncio.to_thread(
            self._call_logger.log_event,
            CallEventType.TRANSFERRED_TO_LA,
            submission_id=session.submission_id,
            agent_id=session.buffer_agent_id or "unknown",
            agent_type=AgentType.BUFFER,
            details={
                "licensed_agent_id": licensed_agent_id,
                "licensed_agent_name": licensed_agent_name,
            },
            agent_name=buffer_agent_name,
            session_id=session.id,
            verification_session_id=session.id,
            notification_id=notification.id,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
        )
        dispatch = await self._dispatch(
            TransferEvent(
                submission_id=session.submission_id,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
                buffer_agent_name=buffer_agent_name,
                licensed_agent_name=licensed_agent_name,
            )
        )
        return TransferOutcome(
            session=session, notification=notification, log_id=log_id, dispatch=dispatch
        )

    # ------------------------------------------------------------------
    # Callbacks and call results
    # ------------------------------------------------------------------

    async def request_callback(
        self,
        *,
        submission_id: str,
        request_type: str,
        notes: str | None = None,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
        carrier: str | None = None,
        state: str | None = None,
    ) -> CallbackOutcome:
        """Record a call center's callback request and notify its channel.

        The request is stored even when the vendor has no channel mapping.
        """
        customer_name, lead_vendor = await self._lead_labels(
            submission_id, customer_name, lead_vendor
        )
        callback = await asyncio.to_thread(
            self._store.insert_callback_request,
            submission_id,
            request_type,
            customer_name=customer_name,
            lead_vendor=lead_vendor,
            notes=notes,
        )
        dispatch = await self._dispatch(
            CallbackRequestEvent(
                submission_id=submission_id,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
                request_type=request_type,
                notes=notes,
                carrier=carrier,
                state=state,
            )
        )
        return CallbackOutcome(callback=callback, dispatch=dispatch)

    async def record_call_result(self, result: CallResultInput) -> CallResultOutcome:
        """Log the end-of-call outcome and post the matching Slack notices."""
        lead = await asyncio.to_thread(self._store.get_lead, result.submission_id)
        customer_name = lead.customer_full_name if lead else None
        lead_vendor = lead.lead_vendor if lead else None
        phone_number = lead.phone_number if lead else None
        email = lead.email if lead else None

        event_type, details = _call_result_log_entry(result)
        log_id: int | None = None
        if event_type is not None:
            log_id = await asyncio.to_thread(
                self._call_logger.log_event,
                event_type,
                submission_id=result.submission_id,
                agent_id=result.agent_id,
                agent_type=result.agent_type,
                details=details,
                agent_name=result.agent_name,
                verification_session_id=result.verification_session_id,
                call_result_id=result.call_result_id,
                customer_name=customer_name,
                lead_vendor=lead_vendor,
                is_retention_call=result.is_retention_call,
            )

        common: dict[str, Any] = {
            "submission_id": result.submission_id,
            "customer_name": customer_name,
            "lead_vendor": lead_vendor,
        }
        event: OutboundEvent
        if result.outcome in ("dropped", "disconnected"):
            event = CallDisconnectedEvent(
                **common,
                dropped=result.outcome == "dropped",
                status=result.status,
                phone_number=phone_number,
                email=email,
                agent_name=result.agent_name,
                buffer_agent_name=result.buffer_agent_name,
                notes=result.notes,
            )
        elif result.outcome == "banking_fix":
            event = BankingFixEvent(
                **common,
                is_retention_call=result.is_retention_call,
                agent_name=result.agent_name,
                carrier=result.carrier,
                new_draft_date=result.new_draft_date,
            )
        elif result.outcome == "carrier_requirement_fulfilled":
            event = CarrierRequirementFulfilledEvent(
                **common,
                is_retention_call=result.is_retention_call,
                agent_name=result.agent_name,
                carrier=result.carrier,
            )
        else:
            event = ApplicationOutcomeEvent(
                **common,
                submitted=result.outcome == "submitted",
                is_retention_call=result.is_retention_call,
                status=result.status,
                dq_reason=result.dq_reason,
                notes=result.notes,
                phone_number=phone_number,
                email=email,
                agent_name=result.agent_name,
                buffer_agent_name=result.buffer_agent_name,
                retention_agent_name=result.agent_name if result.is_retention_call else None,
                carrier=result.carrier,
                product_type=result.product_type,
                draft_date=result.draft_date,
                monthly_premium=result.monthly_premium,
                coverage_amount=result.coverage_amount,
            )

        dispatch = await self._dispatch(event)
        return CallResultOutcome(log_id=log_id, dispatch=dispatch)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _dispatch(self, event: OutboundEvent) -> list[DispatchResult]:
        return await asyncio.to_thread(self._dispatcher.dispatch, event)

    async def _lead_labels(
        self,
        submission_id: str,
        customer_name: str | None,
        lead_vendor: str | None,
    ) -> tuple[str | None, str | None]:
        """Fill missing customer and vendor labels from the lead projection."""
        if customer_name is not None and lead_vendor is not None:
            return customer_name, lead_vendor
        lead = await asyncio.to_thread(self._store.get_lead, submission_id)
        if lead is None:
            return customer_name, lead_vendor
        return customer_name or lead.customer_full_name, lead_vendor or lead.lead_vendor

    async def _refresh_active_sessions(self) -> None:
        ACTIVE_SESSIONS.set(await asyncio.to_thread(self._store.count_active_sessions))


def _call_result_log_entry(
    result: CallResultInput,
) -> tuple[CallEventType | None, dict[str, Any]]:
    """Map a call outcome to its log event type and declared details."""
    if result.outcome == "submitted":
        return CallEventType.APPLICATION_SUBMITTED, {
            "carrier": result.carrier,
            "product_type": result.product_type,
            "monthly_premium": result.monthly_premium,
            "coverage_amount": result.coverage_amount,
        }
    if result.outcome == "not_submitted":
        return CallEventType.APPLICATION_NOT_SUBMITTED, {
            "status": result.status,
            "reason": result.dq_reason,
        }
    if result.outcome == "dropped":
        return CallEventType.CALL_DROPPED, {"reason": result.status}
    if result.outcome == "disconnected":
        return CallEventType.CALL_DISCONNECTED, {"reason": result.status}
    # Retention follow-ups are reported to Slack only.
    return None, {}
