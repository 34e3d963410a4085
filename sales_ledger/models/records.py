"""
Core Data Models for Sales Ledger

These models define the schemas for everything the ledger keeps:
1. Persisted records (sales and expenses) as delivered by the remote store
2. Drafts - user input that has not been validated or written yet
3. Derived totals
4. Transient user notifications

DESIGN DECISION: Records are immutable. The ledger is append + delete only,
and a snapshot is always replaced wholesale, so nothing ever edits a record
in place.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from sales_ledger.models.money import ZERO, Currency


# =============================================================================
# ENUMS
# =============================================================================

class RecordKind(str, Enum):
    """
    The two collections every owner has.

    The value doubles as the collection name in the remote store.
    """
    SALES = "sales"
    EXPENSES = "expenses"


class NotificationKind(str, Enum):
    """Outcome shown to the user after an operation."""
    SUCCESS = "success"
    ERROR = "error"


def _number_to_decimal(value: Any) -> Any:
    """Floats from the store go through str() so 36.5 stays 36.5."""
    if isinstance(value, float):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return value
    return value


def is_iso_date(value: str) -> bool:
    """
    True only for a calendar date written exactly as YYYY-MM-DD.

    Dates are stored and sorted as text, so compact forms such as
    "20240105" must not get through.
    """
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return False
    return parsed.isoformat() == value


def _check_iso_date(value: str) -> str:
    if not is_iso_date(value):
        raise ValueError(f"Not a calendar date (YYYY-MM-DD): {value!r}")
    return value


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """
    Fields shared by sales and expenses.

    `record_date` is read from and written to the store as "date".
    It stays a string: the ledger never interprets time zones.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque id assigned by the remote store"
    )
    record_date: str = Field(
        ...,
        alias="date",
        description="Calendar date of the record (YYYY-MM-DD)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in the record's own currency"
    )
    currency: Currency
    created_at: Optional[datetime] = Field(
        default=None,
        description="When the record was written; provenance and tie-breaking only"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v: Any) -> Any:
        return _number_to_decimal(v)

    @field_validator('record_date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_iso_date(v)


class SaleRecord(LedgerRecord):
    """A sale of `quantity` units of a product at `amount` per unit."""

    product: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Product or service sold"
    )
    quantity: Decimal = Field(
        ...,
        ge=0,
        description="Units sold"
    )

    @field_validator('quantity', mode='before')
    @classmethod
    def parse_quantity(cls, v: Any) -> Any:
        return _number_to_decimal(v)

    @property
    def total(self) -> Decimal:
        """Sale total in its own currency."""
        return self.amount * self.quantity


class ExpenseRecord(LedgerRecord):
    """An expense. The amount is already a total; there is no quantity."""

    category: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Free-text expense category"
    )


RECORD_MODELS: dict[RecordKind, type[LedgerRecord]] = {
    RecordKind.SALES: SaleRecord,
    RecordKind.EXPENSES: ExpenseRecord,
}


# =============================================================================
# DRAFTS - unvalidated user input
# =============================================================================

def _form_value(value: Any) -> Any:
    """Drafts hold form values as text; numbers and dates are stringified."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class SaleDraft(BaseModel):
    """
    A sale as typed by the user.

    CRITICAL: This is PROPOSED data. Every field may be missing or malformed;
    DraftValidator decides whether it can be written.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    record_date: Optional[str] = Field(default=None, alias="date")
    product: Optional[str] = None
    quantity: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = Currency.USD.value

    @field_validator('record_date', 'quantity', 'amount', 'currency', mode='before')
    @classmethod
    def as_form_value(cls, v: Any) -> Any:
        if isinstance(v, Currency):
            return v.value
        return _form_value(v)


class ExpenseDraft(BaseModel):
    """An expense as typed by the user."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    record_date: Optional[str] = Field(default=None, alias="date")
    category: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = Currency.USD.value

    @field_validator('record_date', 'amount', 'currency', mode='before')
    @classmethod
    def as_form_value(cls, v: Any) -> Any:
        if isinstance(v, Currency):
            return v.value
        return _form_value(v)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a draft."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one draft."""

    kind: RecordKind
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def missing_fields(self) -> list[str]:
        return [i.field for i in self.issues if i.issue_type == "missing"]


# =============================================================================
# DERIVED STATE
# =============================================================================

class Totals(BaseModel):
    """
    Totals over both collections, in both currencies.

    Net profit may be negative; the sign only decides whether the
    UI shows it as a profit or a loss.
    """
    model_config = ConfigDict(frozen=True)

    total_sales_usd: Decimal = ZERO
    total_sales_ves: Decimal = ZERO
    total_expenses_usd: Decimal = ZERO
    total_expenses_ves: Decimal = ZERO
    net_profit_usd: Decimal = ZERO
    net_profit_ves: Decimal = ZERO

    @property
    def is_profit(self) -> bool:
        return self.net_profit_usd >= 0

    @property
    def is_loss(self) -> bool:
        return self.net_profit_usd < 0


class Notification(BaseModel):
    """A short-lived message for the user."""
    model_config = ConfigDict(frozen=True)

    message: str = Field(..., min_length=1)
    kind: NotificationKind
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
