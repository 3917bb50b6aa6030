"""Application entry point for the hand-off coordinator HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** forwarding of ERROR-level log events when ``SENTRY_DSN`` is set
- **Services**: SQLite store and change feed, call-event logger, notification
  lifecycle manager, vendor routing table, Slack dispatcher, and the
  :class:`~handoff.workflows.HandoffCoordinator` that ties them together
- **HTTP**: workflow routes, health probes, Prometheus ``/metrics``, and
  request-id middleware
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from handoff.api import router as api_router
from handoff.calllog.logger import CallEventLogger
from handoff.config import Settings, get_settings, validate_credentials
from handoff.domain.errors import InvalidTransitionError, RecordNotFoundError, StoreError
from handoff.health import register_health_routes
from handoff.notifications.manager import NotificationLifecycleManager
from handoff.observability.metrics import ACTIVE_SESSIONS, setup_metrics
from handoff.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from handoff.observability.sentry import get_sentry_processor, init_sentry
from handoff.routing.table import load_routing_table
from handoff.slack.client import SlackNotifier
from handoff.slack.dispatcher import OutboundDispatcher
from handoff.slack.models import SlackConfig
from handoff.store.accessor import SqliteProfileDirectory, VerificationStore
from handoff.store.changefeed import ChangeFeed
from handoff.store.schema import close_handoff_db, init_handoff_db
from handoff.workflows import HandoffCoordinator

logger = structlog.get_logger()


def configure_logging(production: bool = False, *, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR-level events to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the hand-off database, builds the store and its change feed, the
    call-event logger, the notification manager, the vendor routing table,
    and the Slack dispatcher.  Without a Slack bot token the dispatcher still
    runs and reports every post as ``service_unreachable``.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    db_path = settings.database_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_handoff_db(db_path)
    services["db_conn"] = conn

    feed = ChangeFeed()
    store = VerificationStore(conn, feed=feed)
    services["feed"] = feed
    services["store"] = store

    call_logger = CallEventLogger(store, SqliteProfileDirectory(store))
    services["call_logger"] = call_logger

    notifications = NotificationLifecycleManager(
        store, la_ready_ttl_seconds=settings.la_ready_ttl_seconds
    )
    services["notifications"] = notifications

    routing = load_routing_table(settings.vendor_channels_path)
    services["routing"] = routing

    notifier = None
    slack_bot_token = settings.slack_bot_token.get_secret_value() or None
    if slack_bot_token:
        notifier = SlackNotifier(bot_token=slack_bot_token)
        logger.info("slack_notifier_initialized")
    else:
        logger.warning("slack_notifier_disabled", reason="SLACK_BOT_TOKEN not set")

    dispatcher = OutboundDispatcher(
        notifier,
        routing,
        SlackConfig(
            retention_channel=settings.retention_channel,
            callback_portal_channel=settings.callback_portal_channel,
            disconnected_channel=settings.disconnected_channel,
            portal_base_url=settings.portal_base_url,
        ),
    )
    services["dispatcher"] = dispatcher

    services["coordinator"] = HandoffCoordinator(store, call_logger, notifications, dispatcher)

    ACTIVE_SESSIONS.set(store.count_active_sessions())
    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: expires ``la_ready`` notifications left open past their TTL.
    On shutdown: ends open change-feed subscriptions and closes the database.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    notifications = services.get("notifications")
    if notifications is not None:
        await asyncio.to_thread(notifications.expire_stale)
    logger.info("application_starting")
    yield
    feed = services.get("feed")
    if feed is not None:
        feed.close_all()
    conn = services.get("db_conn")
    if conn is not None:
        close_handoff_db(conn)
        logger.info("database_connection_closed")


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors onto HTTP status codes."""

    @app.exception_handler(RecordNotFoundError)
    async def not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(exc),
                "current_state": str(exc.current_state),
                "event": str(exc.event),
            },
        )

    @app.exception_handler(StoreError)
    async def store_failed(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("store_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": "Storage failure"})


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, workflow routes, and probes.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Hand-off Coordinator", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()

    fastapi_app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(fastapi_app)
    fastapi_app.include_router(api_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Configure logging (and Sentry, when a DSN is set)
    2. Validate credentials
    3. Initialize services and create the FastAPI app
    4. Serve with uvicorn until shutdown
    """
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn,
        environment="production" if settings.production else "development",
    )
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("application_boot")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
