"""
Draft Validation

DESIGN DECISION: A draft is checked completely before anything is sent to
the remote store. Validation collects every issue instead of stopping at
the first one, so the user sees all missing fields at once.

Checks:
- Required field presence (None or blank text counts as missing)
- Format (calendar date, decimal numbers, known currency)
- Value (numbers must be finite and non-negative)

IMPORTANT: Validation NEVER silently fixes issues. A draft either becomes
a store payload unchanged or is rejected with ValidationError.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from sales_ledger.models.money import Currency
from sales_ledger.models.records import (
    ExpenseDraft,
    RecordKind,
    SaleDraft,
    ValidationIssue,
    ValidationResult,
    is_iso_date,
)


Draft = Union[SaleDraft, ExpenseDraft]

# Required fields per kind, in the order they appear on the form
REQUIRED_FIELDS: dict[RecordKind, tuple[str, ...]] = {
    RecordKind.SALES: ("date", "product", "quantity", "amount", "currency"),
    RecordKind.EXPENSES: ("date", "category", "amount", "currency"),
}

NUMERIC_FIELDS = frozenset({"quantity", "amount"})


class ValidationError(Exception):
    """A draft is missing a required field or has an invalid value."""

    def __init__(self, kind: RecordKind, issues: list[ValidationIssue]):
        self.kind = kind
        self.issues = issues
        fields = ", ".join(issue.field for issue in issues)
        super().__init__(f"Invalid {kind.value} draft: {fields}")


def _draft_value(draft: Draft, field: str) -> Optional[str]:
    # "date" is stored on the model as record_date
    attr = "record_date" if field == "date" else field
    return getattr(draft, attr, None)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class DraftValidator:
    """
    Validates sale and expense drafts and turns valid ones into store payloads.
    """

    def validate(self, kind: RecordKind, draft: Draft) -> ValidationResult:
        """Collect every issue in the draft."""
        issues = []

        for field in REQUIRED_FIELDS[kind]:
            value = _draft_value(draft, field)

            if _is_blank(value):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field} is required",
                ))
                continue

            if field == "date":
                issue = self._check_date(value)
            elif field in NUMERIC_FIELDS:
                issue = self._check_number(field, value)
            elif field == "currency":
                issue = self._check_currency(value)
            else:
                issue = None

            if issue:
                issues.append(issue)

        return ValidationResult(kind=kind, issues=issues)

    def _check_date(self, value: str) -> Optional[ValidationIssue]:
        if not is_iso_date(value):
            return ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date must be YYYY-MM-DD, got {value!r}",
            )
        return None

    def _check_number(self, field: str, value: str) -> Optional[ValidationIssue]:
        try:
            number = Decimal(value)
        except InvalidOperation:
            return ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{field} must be a number, got {value!r}",
            )
        if not number.is_finite() or number < 0:
            return ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be a non-negative number",
            )
        return None

    def _check_currency(self, value: str) -> Optional[ValidationIssue]:
        try:
            Currency(value.upper())
        except ValueError:
            allowed = ", ".join(c.value for c in Currency)
            return ValidationIssue(
                field="currency",
                issue_type="invalid_value",
                message=f"Currency must be one of {allowed}, got {value!r}",
            )
        return None

    def to_payload(
        self,
        kind: RecordKind,
        draft: Draft,
        created_at: datetime,
    ) -> dict[str, Any]:
        """
        Validate a draft and build the document to write.

        Numbers are written as floats, the representation the document
        store keeps natively.

        Raises:
            ValidationError: if any required field is missing or invalid
        """
        result = self.validate(kind, draft)
        if result.has_errors:
            raise ValidationError(kind, result.issues)

        payload: dict[str, Any] = {
            "date": draft.record_date,
            "amount": float(Decimal(draft.amount)),
            "currency": Currency(draft.currency.upper()).value,
            "created_at": created_at,
        }
        if kind == RecordKind.SALES:
            payload["product"] = draft.product
            payload["quantity"] = float(Decimal(draft.quantity))
        else:
            payload["category"] = draft.category
        return payload
