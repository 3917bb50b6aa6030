"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, production credential gate, dev-mode warnings,
and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from handoff.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.api_port == 8000
        assert s.database_path == Path("data/handoff.db")
        assert s.retention_channel == "#retention-team-portal"
        assert s.callback_portal_channel == "#callback-portal"
        assert s.disconnected_channel == "#disconnected-calls"
        assert s.vendor_channels_path is None
        assert s.la_ready_ttl_seconds == 900
        assert s.slack_bot_token.get_secret_value() == ""

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("API_PORT", "9090")
        monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-test")
        monkeypatch.setenv("LA_READY_TTL_SECONDS", "120")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.api_port == 9090
        assert s.slack_bot_token.get_secret_value() == "xoxb-test"
        assert s.la_ready_ttl_seconds == 120

    def test_token_hidden_in_repr(self) -> None:
        s = Settings(_env_file=None, slack_bot_token="xoxb-secret")  # type: ignore[call-arg, arg-type]
        assert "xoxb-secret" not in repr(s)

    def test_portal_base_url_trailing_slash_stripped(self) -> None:
        s = Settings(_env_file=None, portal_base_url="https://portal.example.com/")  # type: ignore[call-arg]
        assert s.portal_base_url == "https://portal.example.com"

    def test_portal_base_url_must_be_http(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, portal_base_url="portal.example.com")  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------

class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_validate_credentials_production_missing(self) -> None:
        """Production mode exits when the Slack token is missing."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            slack_bot_token="",  # type: ignore[arg-type]
        )

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1

    def test_validate_credentials_production_missing_mapping_file(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            slack_bot_token="xoxb-valid",  # type: ignore[arg-type]
            vendor_channels_path=tmp_path / "missing.yaml",
        )

        with pytest.raises(SystemExit):
            validate_credentials(settings)

    def test_validate_credentials_production_valid(self, tmp_path: Path) -> None:
        """Production mode passes when all credentials exist."""
        mapping = tmp_path / "channels.yaml"
        mapping.write_text('channels:\n  "Acme": "#acme"\n')

        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            slack_bot_token="xoxb-valid",  # type: ignore[arg-type]
            vendor_channels_path=mapping,
        )

        validate_credentials(settings)

    def test_validate_credentials_dev_mode_warns(self) -> None:
        """Dev mode logs warnings but does NOT exit."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=False,
            slack_bot_token="",  # type: ignore[arg-type]
            la_ready_ttl_seconds=0,
        )

        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------

class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Calling get_settings() twice returns the exact same object."""
        monkeypatch.delenv("PRODUCTION", raising=False)

        first = get_settings()
        second = get_settings()

        assert first is second
