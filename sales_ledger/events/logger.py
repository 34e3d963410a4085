"""
Event Logger

DESIGN DECISION: Every significant step of the sync engine is logged as a
structured event. This provides:
1. Traceability of what the remote store told us and when
2. Debugging capability for subscription and write failures
3. Correlation of the events of one user action

Events go to the local structured log only. The ledger keeps no audit
trail of its own.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from sales_ledger.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog) to stderr at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    logging.getLogger("sales_ledger").setLevel(level)


class EventLogger:
    """
    Central event logging service.

    Wraps a structlog logger and maps event severity to log level.
    """

    def __init__(self, logger_name: str = "sales_ledger"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: LedgerEvent) -> None:
        """Log an event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == EventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == EventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == EventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

    def log_record_created(
        self,
        kind: str,
        record_id: str,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an acknowledged create."""
        self.log(LedgerEventBuilder.record_created(
            kind=kind,
            record_id=record_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    def log_record_deleted(
        self,
        kind: str,
        record_id: str,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an acknowledged delete."""
        self.log(LedgerEventBuilder.record_deleted(
            kind=kind,
            record_id=record_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    def log_write_failed(
        self,
        kind: str,
        operation: str,
        error_message: str,
        record_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected create/delete."""
        self.log(LedgerEventBuilder.write_failed(
            kind=kind,
            operation=operation,
            error_message=error_message,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    def log_validation_failed(
        self,
        kind: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a draft that never reached the store."""
        self.log(LedgerEventBuilder.validation_failed(
            kind=kind,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an unexpected error."""
        self.log(LedgerEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. adding a sale).
    """
    return uuid4()
