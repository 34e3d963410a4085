"""
Configuration Management for Sales Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirebaseSettings(BaseSettings):
    """Firebase project configuration (Auth + Firestore)."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Firebase Web API key used for Identity Toolkit calls"
    )
    project_id: str = Field(
        ...,
        description="Google Cloud / Firebase project id"
    )
    app_id: str = Field(
        default="default-app-id",
        description="Application id used as the top-level artifacts segment"
    )
    initial_auth_token: Optional[str] = Field(
        default=None,
        description="Custom token to sign in with; anonymous sign-in when unset"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for Identity Toolkit HTTP requests"
    )
    token_refresh_margin_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Renew the ID token this many seconds before it expires"
    )

    @field_validator('initial_auth_token')
    @classmethod
    def blank_token_is_none(cls, v: Optional[str]) -> Optional[str]:
        """An empty token means anonymous sign-in."""
        if v is not None and not v.strip():
            return None
        return v


class LedgerSettings(BaseSettings):
    """
    Ledger engine settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    notification_ttl_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a notification stays visible"
    )
    default_exchange_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="VES per USD used until the user sets a rate"
    )
    preferences_path: str = Field(
        default=".sales_ledger_prefs.json",
        description="JSON file used to persist the exchange rate"
    )
    exchange_rate_key: str = Field(
        default="exchangeRate",
        description="Key under which the exchange rate is persisted"
    )
    listener_health_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How often Firestore listeners are checked for liveness"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the structured logger"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Loaded lazily so the ledger can run without Firebase configured

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for failures.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.firebase
        results["firebase"] = True
    except Exception as e:
        results["firebase"] = False
        results["firebase_error"] = str(e)

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    return results
