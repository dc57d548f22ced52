"""
Unit Tests - Expense Allocation
"""
import pytest
from datetime import datetime

from seller_analytics.profit.allocation import (
    ExpenseAllocator,
    allocate_by_key,
    marketplace_entries,
    revenue_shares,
)
from tests.factories import expense


class TestExpenseAllocator:
    """Tests for the two-tier allocation"""

    def test_explicit_entry_plus_revenue_share_of_remainder(self):
        allocator = ExpenseAllocator({"A": 30.0, "B": 70.0})

        result = allocator.allocate([expense("e-1", 100.0, datetime(2026, 1, 1), allocations=[("A", 40)])])

        assert result.get("A") == pytest.approx(58.0)
        assert result.get("B") == pytest.approx(42.0)
        assert result.total == pytest.approx(100.0)

    def test_allocate_one_matches_allocate(self):
        allocator = ExpenseAllocator({"A": 30.0, "B": 70.0})
        item = expense("e-1", 100.0, datetime(2026, 1, 1), allocations=[("A", 40)])

        assert allocator.allocate_one(item, "A") == pytest.approx(58.0)
        assert allocator.allocate_one(item, "B") == pytest.approx(42.0)

    def test_fully_allocated_expense_ignores_revenue(self):
        allocator = ExpenseAllocator({"A": 10.0, "B": 90.0})

        result = allocator.allocate([
            expense("e-1", 50.0, datetime(2026, 1, 1), allocations=[("A", 60), ("B", 40)]),
        ])

        assert result.get("A") == pytest.approx(30.0)
        assert result.get("B") == pytest.approx(20.0)

    def test_no_revenue_leaves_pool_unattributed(self):
        allocator = ExpenseAllocator({})

        result = allocator.allocate([expense("e-1", 80.0, datetime(2026, 1, 1))])

        assert result.by_key == {}
        assert result.unattributed == 80.0
        assert result.total == 80.0

    def test_marketplace_entries_claim_whole_expense(self):
        items = [
            expense("e-1", 30.0, datetime(2026, 1, 1), marketplace_id="mp-uk"),
            expense("e-2", 100.0, datetime(2026, 1, 1)),
        ]

        result = allocate_by_key(items, {"mp-us": 75.0, "mp-uk": 25.0}, marketplace_entries)

        assert result.get("mp-uk") == pytest.approx(30.0 + 25.0)
        assert result.get("mp-us") == pytest.approx(75.0)

    def test_group_of_rolls_keys_up(self):
        result = allocate_by_key(
            [expense("e-1", 100.0, datetime(2026, 1, 1))],
            {"mp-us": 50.0, "mp-ca": 25.0, "mp-uk": 25.0},
            marketplace_entries,
            group_of=lambda key: "EU" if key == "mp-uk" else "NA",
        )

        assert result.by_key == pytest.approx({"NA": 75.0, "EU": 25.0})


class TestRevenueShares:
    """Tests for order-level cost splitting"""

    def test_shares_follow_amounts(self):
        assert revenue_shares([30.0, 70.0]) == pytest.approx([0.3, 0.7])

    def test_zero_total_splits_evenly(self):
        assert revenue_shares([0.0, 0.0, 0.0, 0.0]) == [0.25, 0.25, 0.25, 0.25]

    def test_empty(self):
        assert revenue_shares([]) == []
