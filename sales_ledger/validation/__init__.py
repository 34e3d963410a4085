"""Draft validation package."""

from sales_ledger.validation.validator import DraftValidator, ValidationError

__all__ = ["DraftValidator", "ValidationError"]
