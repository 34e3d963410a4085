"""
Money and Currency Conversion

The ledger keeps every amount in the currency it was entered in and
converts at read time, using whatever exchange rate the user has set.

DESIGN DECISION: The exchange rate is always passed in explicitly.
Nothing in this module reads process-wide state, so every conversion
is deterministic given its arguments.

The rate is VES per USD. A rate of zero is a legal input: conversions
degrade to zero instead of raising.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any


ZERO = Decimal("0")
CENT = Decimal("0.01")


class Currency(str, Enum):
    """Currencies a record can be denominated in."""
    USD = "USD"
    VES = "VES"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]


_SYMBOLS = {
    Currency.USD: "$",
    Currency.VES: "Bs.",
}


def coerce_rate(value: Any) -> Decimal:
    """
    Turn user input into an exchange rate.

    Non-numeric, non-finite and non-positive input all become 0.
    A zero rate is kept rather than rejected; see to_usd().
    """
    if isinstance(value, bool):
        return ZERO
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        return ZERO
    if not rate.is_finite() or rate <= 0:
        return ZERO
    return rate


def to_usd(amount: Decimal, currency: Currency, rate: Decimal) -> Decimal:
    """
    Express an amount in USD.

    USD amounts pass through. VES amounts are divided by the rate,
    or become 0 when the rate is not positive.
    """
    if currency == Currency.USD:
        return amount
    if rate > 0:
        return amount / rate
    return ZERO


def to_ves(amount: Decimal, currency: Currency, rate: Decimal) -> Decimal:
    """Express an amount in VES. VES amounts pass through."""
    if currency == Currency.VES:
        return amount
    return amount * rate


def round_for_display(value: Decimal) -> Decimal:
    """Round half-up to cents. Only used for presentation."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal, currency: Currency) -> str:
    """
    Format an amount for display, e.g. "$1,234.50" or "-Bs. 30.00".
    """
    rounded = round_for_display(value)
    sign = "-" if rounded < 0 else ""
    separator = "" if currency == Currency.USD else " "
    return f"{sign}{currency.symbol}{separator}{abs(rounded):,.2f}"
