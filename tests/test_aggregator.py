"""Tests for totals aggregation and the exchange rate."""

import json

import pytest
from decimal import Decimal

from conftest import APP_ID, expense_doc, sale_doc
from sales_ledger.ledger import Aggregator, ExchangeRate, RecordStore, compute_totals
from sales_ledger.models.money import round_for_display
from sales_ledger.models.records import ExpenseRecord, RecordKind, SaleRecord
from sales_ledger.services.preferences import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    PreferenceError,
)


def sales(*docs):
    return [SaleRecord.model_validate(doc) for doc in docs]


def expenses(*docs):
    return [ExpenseRecord.model_validate(doc) for doc in docs]


class TestComputeTotals:
    """Tests for the pure totals function."""

    def test_usd_sale_with_quantity(self):
        """Test a 2 x $10 sale at 36.5 VES/USD."""
        totals = compute_totals(sales(sale_doc("a", amount=10.0, quantity=2)), [], Decimal("36.5"))

        assert totals.total_sales_usd == Decimal("20")
        assert totals.total_sales_ves == Decimal("730")
        assert totals.net_profit_usd == Decimal("20")

    def test_ves_expense(self):
        """Test a Bs. 100 expense at 50 VES/USD."""
        totals = compute_totals([], expenses(expense_doc("a", amount=100.0, currency="VES")), Decimal("50"))

        assert totals.total_expenses_usd == Decimal("2")
        assert totals.total_expenses_ves == Decimal("100")
        assert totals.net_profit_usd == Decimal("-2")
        assert totals.is_loss

    def test_net_profit_in_both_currencies(self):
        """Test $50 of sales against $20 of expenses at 40 VES/USD."""
        totals = compute_totals(
            sales(sale_doc("a", amount=25.0, quantity=2)),
            expenses(expense_doc("b", amount=20.0)),
            Decimal("40"),
        )

        assert totals.net_profit_usd == Decimal("30")
        assert totals.net_profit_ves == Decimal("1200")
        assert totals.is_profit

    def test_mixed_currencies(self):
        totals = compute_totals(
            sales(
                sale_doc("a", amount=10.0, quantity=1, currency="USD"),
                sale_doc("b", amount=365.0, quantity=2, currency="VES"),
            ),
            [],
            Decimal("36.5"),
        )
        assert totals.total_sales_usd == Decimal("30")
        assert totals.total_sales_ves == Decimal("1095")

    def test_zero_rate(self):
        """Test that VES records count as $0 and USD records as Bs. 0 without a rate."""
        totals = compute_totals(
            sales(sale_doc("a", amount=10.0, currency="USD")),
            expenses(expense_doc("b", amount=100.0, currency="VES")),
            Decimal("0"),
        )
        assert totals.total_sales_usd == Decimal("10")
        assert totals.total_sales_ves == Decimal("0")
        assert totals.total_expenses_usd == Decimal("0")
        assert totals.total_expenses_ves == Decimal("100")

    def test_inexact_division_rounds_for_display(self):
        totals = compute_totals([], expenses(expense_doc("a", amount=100.0, currency="VES")), Decimal("36.5"))
        assert round_for_display(totals.total_expenses_usd) == Decimal("2.74")

    def test_empty(self):
        totals = compute_totals([], [], Decimal("36.5"))
        assert totals.total_sales_usd == Decimal("0")
        assert totals.net_profit_ves == Decimal("0")


class TestAggregator:
    """Tests for live totals."""

    @pytest.fixture
    def stores(self, remote):
        return (
            RecordStore(RecordKind.SALES, remote, APP_ID),
            RecordStore(RecordKind.EXPENSES, remote, APP_ID),
        )

    def test_recomputes_on_delivery(self, stores):
        sale_store, expense_store = stores
        aggregator = Aggregator(sale_store, expense_store, ExchangeRate(initial="40"))
        seen = []
        aggregator.add_listener(seen.append)

        sale_store.apply_snapshot([sale_doc("a", amount=25.0, quantity=2)])
        expense_store.apply_snapshot([expense_doc("b", amount=20.0)])

        assert aggregator.totals.net_profit_usd == Decimal("30")
        assert aggregator.totals.net_profit_ves == Decimal("1200")
        assert len(seen) == 2

    def test_rate_change_revalues_every_record(self, stores):
        """Test that there is no rate history."""
        sale_store, expense_store = stores
        rate = ExchangeRate(initial="36.5")
        aggregator = Aggregator(sale_store, expense_store, rate)
        sale_store.apply_snapshot([sale_doc("a", amount=10.0, quantity=2)])
        assert aggregator.totals.total_sales_ves == Decimal("730")

        rate.set("40")

        assert aggregator.totals.total_sales_ves == Decimal("800")

    def test_detach(self, stores):
        sale_store, expense_store = stores
        aggregator = Aggregator(sale_store, expense_store, ExchangeRate())
        aggregator.detach()

        sale_store.apply_snapshot([sale_doc("a")])

        assert aggregator.totals.total_sales_usd == Decimal("0")


class TestExchangeRate:
    """Tests for the user-controlled exchange rate."""

    def test_bad_input_becomes_zero(self):
        rate = ExchangeRate(initial="36.5")
        assert rate.set("abc") == Decimal("0")
        assert rate.value == Decimal("0")

    def test_listeners_only_on_change(self):
        rate = ExchangeRate(initial="36.5")
        calls = []
        rate.add_listener(lambda: calls.append(rate.value))

        rate.set("36.50")
        rate.set("40")
        rate.set(40)

        assert calls == [Decimal("40")]

    def test_stored_rate_wins_over_initial(self):
        prefs = InMemoryKeyValueStore({"exchangeRate": "38.2"})
        assert ExchangeRate(initial="36.5", preferences=prefs).value == Decimal("38.2")

    def test_persists_to_json_file(self, tmp_path):
        """Test that the rate survives a restart."""
        path = tmp_path / "prefs.json"
        ExchangeRate(preferences=JsonFileKeyValueStore(path)).set("36.5")

        assert json.loads(path.read_text(encoding="utf-8")) == {"exchangeRate": "36.5"}
        restored = ExchangeRate(preferences=JsonFileKeyValueStore(path))
        assert restored.value == Decimal("36.5")

    def test_corrupt_preferences_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{not json", encoding="utf-8")

        rate = ExchangeRate(initial="36.5", preferences=JsonFileKeyValueStore(path))

        assert rate.value == Decimal("36.5")

    def test_unwritable_preferences_keep_rate(self, tmp_path):
        """Test that a failed save does not undo the change."""
        prefs = JsonFileKeyValueStore(tmp_path / "missing-dir" / "prefs.json")
        with pytest.raises(PreferenceError):
            prefs.set("exchangeRate", "1")

        rate = ExchangeRate(preferences=prefs)
        rate.set("36.5")

        assert rate.value == Decimal("36.5")
