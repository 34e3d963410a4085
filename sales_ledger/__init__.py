"""
Sales Ledger - Source Package

A personal sales and expense ledger that keeps its records in a remote
document store, mirrors them locally through live subscriptions, and
reports totals in both USD and VES.

DESIGN PRINCIPLES:
1. The remote store is the source of truth
2. Local state changes only when the store pushes a snapshot
3. Money is converted at read time with the current exchange rate
4. Failures surface as notifications, never as crashes
5. Storage and identity backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Sales Ledger Team"
