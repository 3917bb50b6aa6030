"""HTTP endpoints for the hand-off workflows.

Routes pull the :class:`~handoff.workflows.HandoffCoordinator` and the
call-event logger from ``app.state.services``, which ``create_app`` fills at
startup.  Domain errors propagate to the exception handlers registered in
:mod:`handoff.app`.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from handoff.calllog.logger import CallEventLogger
from handoff.domain.models import (
    Lead,
    RetentionCallNotification,
    VerificationItem,
    VerificationSession,
)
from handoff.domain.types import AgentType, SessionStatus
from handoff.slack.models import RetentionDetails
from handoff.workflows import (
    CallbackOutcome,
    CallResultInput,
    CallResultOutcome,
    HandoffCoordinator,
    NotificationOutcome,
    SessionView,
    StartedVerification,
    TransferOutcome,
)

router = APIRouter()


class StartSessionRequest(BaseModel):
    submission_id: str
    buffer_agent_id: str
    agent_type: AgentType = AgentType.BUFFER
    agent_name: str | None = None
    reconnected: bool = False
    lead: Lead | None = None


class ItemUpdateRequest(BaseModel):
    """Only the fields present in the request body are written."""

    is_verified: bool | None = None
    verified_value: str | None = None
    notes: str | None = None


class StatusChangeRequest(BaseModel):
    status: SessionStatus


class TransferRequest(BaseModel):
    licensed_agent_id: str | None = None
    buffer_agent_name: str | None = None
    licensed_agent_name: str | None = None


class BufferConnectedRequest(BaseModel):
    submission_id: str
    verification_session_id: str | None = None
    buffer_agent_id: str
    buffer_agent_name: str | None = None
    customer_name: str | None = None
    lead_vendor: str | None = None
    retention: RetentionDetails | None = None


class LaReadyRequest(BaseModel):
    submission_id: str
    verification_session_id: str | None = None
    licensed_agent_id: str
    licensed_agent_name: str | None = None
    buffer_agent_id: str | None = None
    buffer_agent_name: str | None = None
    customer_name: str | None = None
    lead_vendor: str | None = None


class CallbackBody(BaseModel):
    submission_id: str
    request_type: str
    notes: str | None = None
    customer_name: str | None = None
    lead_vendor: str | None = None
    carrier: str | None = None
    state: str | None = None


def _coordinator(request: Request) -> HandoffCoordinator:
    coordinator: HandoffCoordinator = request.app.state.services["coordinator"]
    return coordinator


# ---------------------------------------------------------------------------
# Verification sessions
# ---------------------------------------------------------------------------


@router.post("/sessions", status_code=201)
async def start_session(body: StartSessionRequest, request: Request) -> StartedVerification:
    """Open a verification session for a lead."""
    lead = body.lead
    if lead is not None:
        await asyncio.to_thread(request.app.state.services["store"].upsert_lead, lead)
    return await _coordinator(request).start_verification(
        body.submission_id,
        body.buffer_agent_id,
        agent_type=body.agent_type,
        agent_name=body.agent_name,
        reconnected=body.reconnected,
        lead=lead,
    )


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request) -> SessionView:
    return await _coordinator(request).get_session_view(session_id)


@router.patch("/sessions/{session_id}/items/{item_id}")
async def update_item(
    session_id: str,
    item_id: str,
    body: ItemUpdateRequest,
    request: Request,
) -> VerificationItem:
    """Write the verified flag, verified value, or notes of one item."""
    changes = body.model_dump(exclude_unset=True)
    if changes.get("is_verified", False) is None:
        raise HTTPException(status_code=422, detail="is_verified must be true or false")
    return await _coordinator(request).update_item(session_id, item_id, **changes)


@router.post("/sessions/{session_id}/status")
async def change_status(
    session_id: str,
    body: StatusChangeRequest,
    request: Request,
) -> VerificationSession:
    return await _coordinator(request).advance_session(session_id, body.status)


@router.post("/sessions/{session_id}/transfer")
async def transfer(session_id: str, body: TransferRequest, request: Request) -> TransferOutcome:
    return await _coordinator(request).transfer(
        session_id,
        licensed_agent_id=body.licensed_agent_id,
        buffer_agent_name=body.buffer_agent_name,
        licensed_agent_name=body.licensed_agent_name,
    )


# ---------------------------------------------------------------------------
# Retention hand-off
# ---------------------------------------------------------------------------


@router.post("/retention/buffer-connected")
async def buffer_connected(body: BufferConnectedRequest, request: Request) -> NotificationOutcome:
    return await _coordinator(request).buffer_connected(
        **body.model_dump(exclude={"retention"}),
        retention=body.retention,
    )


@router.post("/retention/la-ready")
async def la_ready(body: LaReadyRequest, request: Request) -> NotificationOutcome:
    """Signal that a licensed agent is ready.  Safe to deliver more than once."""
    try:
        return await _coordinator(request).la_ready(**body.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@router.get("/notifications/pending")
async def pending_notification(
    request: Request,
    recipient_id: str = Query(...),
) -> dict[str, RetentionCallNotification | None]:
    """Return the buffer agent's pending la_ready popup, if one is due."""
    manager = _coordinator(request).notifications
    notification = await asyncio.to_thread(manager.pending_popup, recipient_id)
    return {"notification": notification}


@router.post("/notifications/{notification_id}/seen")
async def mark_seen(
    notification_id: str,
    request: Request,
) -> dict[str, RetentionCallNotification | None]:
    manager = _coordinator(request).notifications
    notification = await asyncio.to_thread(manager.mark_seen, notification_id)
    return {"notification": notification}


@router.post("/notifications/{notification_id}/acknowledge")
async def acknowledge(notification_id: str, request: Request) -> dict[str, str]:
    """Acknowledge a notification and return the call-result deep link."""
    manager = _coordinator(request).notifications
    link = await asyncio.to_thread(manager.acknowledge, notification_id)
    return {"redirect": link}


# ---------------------------------------------------------------------------
# Callbacks, call results, and the call-update log
# ---------------------------------------------------------------------------


@router.post("/callbacks", status_code=201)
async def request_callback(body: CallbackBody, request: Request) -> CallbackOutcome:
    return await _coordinator(request).request_callback(**body.model_dump())


@router.post("/call-results")
async def call_results(body: CallResultInput, request: Request) -> CallResultOutcome:
    return await _coordinator(request).record_call_result(body)


@router.get("/call-logs")
async def call_logs(
    request: Request,
    submission_id: str | None = None,
    agent_id: str | None = None,
    event_type: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    limit: int = Query(50, ge=1, le=1000),
) -> dict[str, list[dict[str, Any]]]:
    """Query the call-update log, newest first."""
    call_logger: CallEventLogger = request.app.state.services["call_logger"]
    results = await asyncio.to_thread(
        call_logger.query_call_logs,
        submission_id=submission_id,
        agent_id=agent_id,
        event_type=event_type,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
    )
    return {"results": results}
