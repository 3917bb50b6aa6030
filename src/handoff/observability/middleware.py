"""Per-request log context for the coordinator's HTTP API.

Agent dashboards send their own ``X-Request-ID`` so a click in the UI can be
matched to the log lines it produced; other callers get a fresh UUID4.  The
ID is echoed on the response and bound into structlog contextvars for the
life of the request.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "handoff-coordinator"
REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger()


def _request_id(request: Request) -> str:
    return request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an ID and write one ``http_request_completed`` line."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        # Contextvars leak between requests served by the same task otherwise.
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, service=SERVICE_NAME)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "http_request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(elapsed_ms, 2),
        )
        return response
