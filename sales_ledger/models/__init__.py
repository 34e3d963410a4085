"""
Data Models Package

This package contains the money helpers and all Pydantic models used in
the Sales Ledger. All data flowing through the engine conforms to these
schemas.
"""

from sales_ledger.models.money import (
    Currency,
    coerce_rate,
    format_amount,
    round_for_display,
    to_usd,
    to_ves,
)
from sales_ledger.models.records import (
    RECORD_MODELS,
    ExpenseDraft,
    ExpenseRecord,
    LedgerRecord,
    Notification,
    NotificationKind,
    RecordKind,
    SaleDraft,
    SaleRecord,
    Totals,
    ValidationIssue,
    ValidationResult,
    is_iso_date,
)
from sales_ledger.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)

__all__ = [
    # Money
    "Currency",
    "coerce_rate",
    "format_amount",
    "round_for_display",
    "to_usd",
    "to_ves",
    # Records
    "RECORD_MODELS",
    "ExpenseDraft",
    "ExpenseRecord",
    "LedgerRecord",
    "Notification",
    "NotificationKind",
    "RecordKind",
    "SaleDraft",
    "SaleRecord",
    "Totals",
    "ValidationIssue",
    "ValidationResult",
    "is_iso_date",
    # Events
    "EventSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
]
