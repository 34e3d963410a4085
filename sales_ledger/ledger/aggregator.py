"""
Totals Aggregation

compute_totals() is a pure function of the two snapshots and the rate.
Aggregator keeps the latest result and recomputes it synchronously
whenever one of those inputs changes. Recomputation is linear in the
number of records, so there is no caching beyond holding the last result.
"""

from decimal import Decimal
from typing import Callable, Iterable

from sales_ledger.ledger.rate import ExchangeRate
from sales_ledger.ledger.record_store import RecordStore
from sales_ledger.models.money import ZERO, to_usd, to_ves
from sales_ledger.models.records import ExpenseRecord, SaleRecord, Totals


Listener = Callable[[Totals], None]


def compute_totals(
    sales: Iterable[SaleRecord],
    expenses: Iterable[ExpenseRecord],
    rate: Decimal,
) -> Totals:
    """
    Sum both collections in both currencies.

    Sales are converted per unit and then multiplied by quantity.
    Expense amounts are already totals.
    """
    sales_usd = ZERO
    sales_ves = ZERO
    for sale in sales:
        sales_usd += to_usd(sale.amount, sale.currency, rate) * sale.quantity
        sales_ves += to_ves(sale.amount, sale.currency, rate) * sale.quantity

    expenses_usd = ZERO
    expenses_ves = ZERO
    for expense in expenses:
        expenses_usd += to_usd(expense.amount, expense.currency, rate)
        expenses_ves += to_ves(expense.amount, expense.currency, rate)

    return Totals(
        total_sales_usd=sales_usd,
        total_sales_ves=sales_ves,
        total_expenses_usd=expenses_usd,
        total_expenses_ves=expenses_ves,
        net_profit_usd=sales_usd - expenses_usd,
        net_profit_ves=sales_ves - expenses_ves,
    )


class Aggregator:
    """
    Live totals over a pair of record stores and an exchange rate.
    """

    def __init__(
        self,
        sales: RecordStore[SaleRecord],
        expenses: RecordStore[ExpenseRecord],
        rate: ExchangeRate,
    ):
        self._sales = sales
        self._expenses = expenses
        self._rate = rate
        self._listeners: list[Listener] = []
        self._unregister = [
            sales.add_listener(self.recompute),
            expenses.add_listener(self.recompute),
            rate.add_listener(self.recompute),
        ]
        self._totals = self._compute()

    @property
    def totals(self) -> Totals:
        return self._totals

    def _compute(self) -> Totals:
        return compute_totals(
            self._sales.current_snapshot(),
            self._expenses.current_snapshot(),
            self._rate.value,
        )

    def recompute(self) -> Totals:
        """Recompute from the current inputs and notify listeners."""
        self._totals = self._compute()
        for listener in list(self._listeners):
            listener(self._totals)
        return self._totals

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def detach(self) -> None:
        """Stop following the inputs."""
        for unregister in self._unregister:
            unregister()
        self._unregister = []
