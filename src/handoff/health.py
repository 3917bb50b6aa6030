"""Liveness and readiness probes.

``GET /health`` answers 200 while the process is up.  ``GET /ready`` answers
200 only when the hand-off database responds and the vendor routing table
has at least one mapping; otherwise 503 with the failing checks named.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from handoff.routing.table import VendorRoutingTable


async def _database_check(conn: sqlite3.Connection | None) -> str:
    if conn is None:
        return "fail"
    try:
        await asyncio.to_thread(conn.execute, "SELECT 1")
    except sqlite3.Error:
        return "fail"
    return "ok"


def _routing_check(routing: VendorRoutingTable | None) -> str:
    # An empty table would turn every vendor-routed notice into a miss.
    return "ok" if routing is not None and len(routing) > 0 else "fail"


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        services: dict[str, Any] = request.app.state.services
        checks = {
            "database": await _database_check(services.get("db_conn")),
            "vendor_routing": _routing_check(services.get("routing")),
        }

        if all(result == "ok" for result in checks.values()):
            return JSONResponse(content={"status": "ready", "checks": checks})
        return JSONResponse(content={"status": "not_ready", "checks": checks}, status_code=503)
