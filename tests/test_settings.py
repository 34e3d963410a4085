"""Tests for configuration and event logging."""

import pytest
from decimal import Decimal

import pydantic

from sales_ledger.config import get_settings, validate_all_settings
from sales_ledger.config.settings import FirebaseSettings, LedgerSettings
from sales_ledger.events import EventLogger, create_correlation_id
from sales_ledger.models.events import LedgerEventBuilder


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "FIREBASE_API_KEY",
        "FIREBASE_PROJECT_ID",
        "FIREBASE_APP_ID",
        "FIREBASE_INITIAL_AUTH_TOKEN",
        "LEDGER_LOG_LEVEL",
        "LEDGER_NOTIFICATION_TTL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for LEDGER_* settings."""

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.notification_ttl_seconds == 5.0
        assert settings.default_exchange_rate == Decimal("0")
        assert settings.exchange_rate_key == "exchangeRate"
        assert settings.log_level == "INFO"

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", " debug ")
        assert LedgerSettings().log_level == "DEBUG"

    def test_unknown_log_level(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "chatty")
        with pytest.raises(pydantic.ValidationError):
            LedgerSettings()

    def test_ttl_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("LEDGER_NOTIFICATION_TTL_SECONDS", "0")
        with pytest.raises(pydantic.ValidationError):
            LedgerSettings()


class TestFirebaseSettings:
    """Tests for FIREBASE_* settings."""

    def test_required_fields(self):
        with pytest.raises(pydantic.ValidationError):
            FirebaseSettings()

    def test_configured(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_API_KEY", "key")
        monkeypatch.setenv("FIREBASE_PROJECT_ID", "demo-ledger")
        monkeypatch.setenv("FIREBASE_INITIAL_AUTH_TOKEN", "   ")

        settings = FirebaseSettings()

        assert settings.project_id == "demo-ledger"
        assert settings.app_id == "default-app-id"
        assert settings.initial_auth_token is None
        assert settings.token_refresh_margin_seconds == 300.0

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["firebase"] is False
        assert "firebase_error" in results


class TestEventLogger:
    """Tests for the structured event logger."""

    def test_every_severity_can_be_logged(self):
        logger = EventLogger("sales_ledger.test")
        logger.log(LedgerEventBuilder.snapshot_applied("owner-1", "sales", 1, 0))
        logger.log(LedgerEventBuilder.sign_in_started("anonymous"))
        logger.log(LedgerEventBuilder.identity_lost("owner-1"))
        logger.log_error("unexpected", "boom", {"where": "test"})

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()
