"""
Unit Tests - Expense Parsing and Summaries
"""
import pytest
from datetime import datetime

from seller_analytics.profit.errors import ValidationError
from seller_analytics.profit.facts import AllocatedProduct, ExpenseType
from seller_analytics.services.expenses import (
    ExpensesService,
    allocated_amount_for_sku,
    normalize_allocated_products,
    parse_allocated_products,
    parse_expense_type,
    summarize_expenses,
)
from tests.factories import expense


class TestAllocatedProducts:
    """Tests for allocation list cleanup"""

    def test_drops_blank_and_non_positive_entries(self):
        result = normalize_allocated_products([
            {"sku": " SKU-A ", "percentage": 40},
            {"sku": "", "percentage": 10},
            {"sku": "SKU-B", "percentage": 0},
            {"sku": "SKU-C", "percentage": "abc"},
        ])

        assert result == (AllocatedProduct(sku="SKU-A", percentage=40.0),)

    def test_over_100_percent_rejected(self):
        with pytest.raises(ValidationError):
            normalize_allocated_products([{"sku": "A", "percentage": 70}, {"sku": "B", "percentage": 40}])

    def test_rounding_slack_accepted(self):
        result = normalize_allocated_products([
            {"sku": "A", "percentage": 50.005},
            {"sku": "B", "percentage": 50.0},
        ])

        assert len(result) == 2

    def test_parse_json_and_short_form(self):
        expected = (AllocatedProduct("A", 50.0), AllocatedProduct("B", 50.0))

        assert parse_allocated_products('[{"sku": "A", "percentage": 50}, {"sku": "B", "percentage": 50}]') == expected
        assert parse_allocated_products("A:50, B:50") == expected
        assert parse_allocated_products("") == ()


class TestExpenseType:

    @pytest.mark.parametrize("value,expected", [
        ("fixed", ExpenseType.FIXED),
        ("Recurring", ExpenseType.RECURRING),
        ("one time", ExpenseType.ONE_TIME),
        ("one_time", ExpenseType.ONE_TIME),
        ("one-time", ExpenseType.ONE_TIME),
    ])
    def test_parse(self, value, expected):
        assert parse_expense_type(value) == expected

    def test_invalid(self):
        with pytest.raises(ValidationError, match="Invalid expense type"):
            parse_expense_type("weekly")


class TestSummaries:

    def test_allocated_amount_for_sku(self):
        item = expense("e-1", 200.0, datetime(2026, 1, 1), allocations=[("A", 25)])

        assert allocated_amount_for_sku(item, "A") == 50.0
        assert allocated_amount_for_sku(item, "B") == 0.0
        assert allocated_amount_for_sku(item, None) == 200.0

    def test_summarize_by_type_and_category(self):
        items = [
            expense("e-1", 100.0, datetime(2026, 1, 1), category="Software"),
            expense("e-2", 50.5, datetime(2026, 1, 2), category="Advertising"),
        ]

        summary = summarize_expenses(items)

        assert summary["total_amount"] == 150.5
        assert summary["count"] == 2
        assert summary["by_type"] == {"fixed": 0.0, "recurring": 0.0, "one-time": 150.5}
        assert summary["by_category"] == {"Advertising": 50.5, "Software": 100.0}


class TestCsvRows:
    """Tests for bulk import row parsing"""

    def test_row_values(self):
        values = ExpensesService._row_values("acc-1", {
            "type": "recurring",
            "category": "Software",
            "amount": "49.99",
            "date": "2026-09-01",
            "allocated_products": "SKU-A:100",
            "currency": None,
        })

        assert values["type"] == ExpenseType.RECURRING
        assert values["amount"] == 49.99
        assert values["incurred_at"] == datetime(2026, 9, 1)
        assert values["currency"] == "USD"
        assert values["allocated_products"] == [{"sku": "SKU-A", "percentage": 100.0}]

    def test_missing_fields(self):
        with pytest.raises(ValidationError, match="Missing required fields"):
            ExpensesService._row_values("acc-1", {"type": "fixed", "category": "Rent"})

    def test_bad_amount(self):
        with pytest.raises(ValidationError, match="Invalid amount"):
            ExpensesService._row_values("acc-1", {
                "type": "fixed", "category": "Rent", "amount": "lots", "incurred_at": "2026-09-01",
            })
