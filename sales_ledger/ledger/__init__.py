"""
Ledger engine package.

Record stores, the sync session, totals aggregation, the exchange rate
and the notification channel.
"""

from sales_ledger.ledger.aggregator import Aggregator, compute_totals
from sales_ledger.ledger.notifications import NotificationChannel
from sales_ledger.ledger.rate import ExchangeRate
from sales_ledger.ledger.record_store import RecordStore, sort_records
from sales_ledger.ledger.session import SessionError, SessionState, SyncSession

__all__ = [
    "Aggregator",
    "ExchangeRate",
    "NotificationChannel",
    "RecordStore",
    "SessionError",
    "SessionState",
    "SyncSession",
    "compute_totals",
    "sort_records",
]
