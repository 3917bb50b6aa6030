"""Runtime settings for the hand-off coordinator.

Values come from the process environment, then ``.env``.  Field names map to
upper-case variables (``slack_bot_token`` reads ``SLACK_BOT_TOKEN``).  Nothing
from the ``handoff`` package is imported here so every module can read
settings without import cycles.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Coordinator settings.

    The Slack bot token is a ``SecretStr`` so it never shows up in reprs,
    validation errors or log lines.  When it is empty the coordinator still
    runs and every Slack post is reported as ``service_unreachable``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    production: bool = False
    api_port: int = 8000

    # SQLite file holding sessions, items, notifications and call logs.
    database_path: Path = Path("data/handoff.db")

    slack_bot_token: SecretStr = SecretStr("")
    retention_channel: str = "#retention-team-portal"
    callback_portal_channel: str = "#callback-portal"
    disconnected_channel: str = "#disconnected-calls"
    # Prefix for the "open in portal" links embedded in Slack notices.
    portal_base_url: str = "http://localhost:8080"
    # None means the vendor mapping packaged with handoff.routing.
    vendor_channels_path: Path | None = None

    la_ready_ttl_seconds: int = 900

    sentry_dsn: str = ""

    @field_validator("portal_base_url")
    @classmethod
    def check_portal_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("portal_base_url must be an http(s) URL")
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process; tests reset with ``get_settings.cache_clear()``."""
    try:
        return Settings()
    except ValidationError as exc:
        # exc.errors() names the fields without echoing the raw input text.
        logger.error("settings_validation_failed", errors=exc.errors(include_input=False))
        sys.exit(1)


def _configuration_problems(settings: Settings) -> list[str]:
    problems: list[str] = []
    if not settings.slack_bot_token.get_secret_value():
        problems.append("SLACK_BOT_TOKEN is empty or not set")
    mapping = settings.vendor_channels_path
    if mapping is not None and not mapping.exists():
        problems.append(f"Vendor channel mapping not found: {mapping}")
    if settings.la_ready_ttl_seconds <= 0:
        problems.append("LA_READY_TTL_SECONDS must be positive")
    return problems


def validate_credentials(settings: Settings) -> None:
    """Check startup configuration.

    Production refuses to start (exit status 1) when the Slack token or a
    configured vendor mapping file is missing, or the la_ready TTL is not
    positive.  Development logs each problem as a warning and carries on.
    """
    problems = _configuration_problems(settings)
    if not problems:
        logger.info("credential_validation_passed")
        return

    if not settings.production:
        for problem in problems:
            logger.warning("credential_missing_dev", detail=problem)
        return

    for problem in problems:
        logger.error("credential_missing", detail=problem)
    lines = ["", "=== STARTUP FAILED ===", "Hand-off coordinator is not configured for production:"]
    lines.extend(f"  - {problem}" for problem in problems)
    lines.append("")
    print("\n".join(lines), file=sys.stderr)
    sys.exit(1)
