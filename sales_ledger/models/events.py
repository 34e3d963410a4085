"""
Event Models for Sales Ledger

Every significant step of the sync engine produces a structured event:
sign-in, subscription lifecycle, snapshot delivery, writes and failures.
Events are written to the local structured log only.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class LedgerEventType(str, Enum):
    """Types of events the engine logs."""
    # Identity
    SIGN_IN_STARTED = "sign_in_started"
    SIGN_IN_SUCCEEDED = "sign_in_succeeded"
    SIGN_IN_FAILED = "sign_in_failed"
    IDENTITY_LOST = "identity_lost"
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"

    # Subscriptions
    SUBSCRIPTION_OPENED = "subscription_opened"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_FAILED = "subscription_failed"
    SNAPSHOT_APPLIED = "snapshot_applied"
    MALFORMED_DOCUMENT_SKIPPED = "malformed_document_skipped"

    # Writes
    RECORD_CREATED = "record_created"
    RECORD_DELETED = "record_deleted"
    WRITE_FAILED = "write_failed"
    VALIDATION_FAILED = "validation_failed"

    # Settings
    EXCHANGE_RATE_CHANGED = "exchange_rate_changed"

    # System events
    SESSION_TORN_DOWN = "session_torn_down"
    SYSTEM_ERROR = "system_error"


class EventSeverity(str, Enum):
    """Severity level for events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single engine event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )
    event_type: LedgerEventType
    severity: EventSeverity = EventSeverity.INFO

    # What the event is about
    owner_id: Optional[str] = None
    kind: Optional[str] = Field(
        default=None,
        description="Collection kind (sales/expenses) if applicable"
    )
    record_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "kind": self.kind,
            "record_id": self.record_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build events with common patterns.

    Usage:
        event = LedgerEventBuilder.record_created("sales", record_id, owner_id)
    """

    @staticmethod
    def sign_in_started(method: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SIGN_IN_STARTED,
            description=f"Signing in ({method})",
            details={"method": method},
        )

    @staticmethod
    def sign_in_succeeded(owner_id: str, method: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SIGN_IN_SUCCEEDED,
            owner_id=owner_id,
            description="Identity available",
            details={"method": method},
        )

    @staticmethod
    def sign_in_failed(method: str, error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SIGN_IN_FAILED,
            severity=EventSeverity.ERROR,
            description=f"Sign-in failed ({method})",
            details={"method": method},
            error_message=error_message,
        )

    @staticmethod
    def identity_lost(owner_id: Optional[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.IDENTITY_LOST,
            severity=EventSeverity.WARNING,
            owner_id=owner_id,
            description="Identity lost; tearing down session",
        )

    @staticmethod
    def token_refreshed(owner_id: str, expires_in: Optional[int]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TOKEN_REFRESHED,
            owner_id=owner_id,
            description="ID token renewed",
            details={"expires_in": expires_in},
        )

    @staticmethod
    def token_refresh_failed(owner_id: Optional[str], error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TOKEN_REFRESH_FAILED,
            severity=EventSeverity.WARNING,
            owner_id=owner_id,
            description="ID token renewal failed; will retry",
            error_message=error_message,
        )

    @staticmethod
    def subscription_opened(owner_id: str, kind: str, path: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SUBSCRIPTION_OPENED,
            owner_id=owner_id,
            kind=kind,
            description=f"Listening to {path}",
            details={"path": path},
        )

    @staticmethod
    def subscription_cancelled(owner_id: Optional[str], kind: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SUBSCRIPTION_CANCELLED,
            owner_id=owner_id,
            kind=kind,
            description=f"Stopped listening to {kind}",
        )

    @staticmethod
    def subscription_failed(owner_id: Optional[str], kind: str, error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SUBSCRIPTION_FAILED,
            severity=EventSeverity.ERROR,
            owner_id=owner_id,
            kind=kind,
            description=f"Subscription to {kind} reported an error",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_applied(owner_id: Optional[str], kind: str, count: int, skipped: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SNAPSHOT_APPLIED,
            severity=EventSeverity.DEBUG,
            owner_id=owner_id,
            kind=kind,
            description=f"Installed {kind} snapshot with {count} records",
            details={"count": count, "skipped": skipped},
        )

    @staticmethod
    def malformed_document_skipped(kind: str, record_id: Optional[str], error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.MALFORMED_DOCUMENT_SKIPPED,
            severity=EventSeverity.WARNING,
            kind=kind,
            record_id=record_id,
            description=f"Skipped malformed {kind} document",
            error_message=error_message,
        )

    @staticmethod
    def record_created(
        kind: str,
        record_id: str,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.RECORD_CREATED,
            owner_id=owner_id,
            kind=kind,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"Created {kind} record",
        )

    @staticmethod
    def record_deleted(
        kind: str,
        record_id: str,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.RECORD_DELETED,
            owner_id=owner_id,
            kind=kind,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"Deleted {kind} record",
        )

    @staticmethod
    def write_failed(
        kind: str,
        operation: str,
        error_message: str,
        record_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.WRITE_FAILED,
            severity=EventSeverity.ERROR,
            kind=kind,
            record_id=record_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} on {kind} failed",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        kind: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.VALIDATION_FAILED,
            severity=EventSeverity.WARNING,
            kind=kind,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} draft rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def exchange_rate_changed(old_rate: str, new_rate: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXCHANGE_RATE_CHANGED,
            description=f"Exchange rate changed to {new_rate}",
            details={"old_rate": old_rate, "new_rate": new_rate},
        )

    @staticmethod
    def session_torn_down(owner_id: Optional[str], reason: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SESSION_TORN_DOWN,
            owner_id=owner_id,
            description=f"Session torn down: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYSTEM_ERROR,
            severity=EventSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
