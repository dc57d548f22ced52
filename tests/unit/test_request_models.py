"""
Unit Tests - API Request Models
"""
from datetime import datetime

from seller_analytics.serving.api.routes.cogs import CostLotCreate, CostLotUpdate
from seller_analytics.serving.api.routes.expenses import ExpenseCreate


class TestTimestamps:
    """Timestamps are stored as naive UTC"""

    def test_cost_lot_utc_suffix(self):
        lot = CostLotCreate.model_validate({
            "accountId": "acc-1",
            "sku": "SKU-A",
            "quantity": 10,
            "unitCost": 2.0,
            "purchasedAt": "2026-09-01T10:00:00Z",
        })

        assert lot.purchased_at == datetime(2026, 9, 1, 10, 0)
        assert lot.purchased_at.tzinfo is None

    def test_cost_lot_offset_converted(self):
        lot = CostLotCreate.model_validate({
            "accountId": "acc-1",
            "sku": "SKU-A",
            "quantity": 10,
            "unitCost": 2.0,
            "purchasedAt": "2026-09-01T01:00:00+02:00",
        })

        assert lot.purchased_at == datetime(2026, 8, 31, 23, 0)

    def test_cost_lot_update(self):
        changes = CostLotUpdate.model_validate({"purchasedAt": "2026-09-01T10:00:00-05:00"})

        assert changes.model_dump(exclude_unset=True) == {"purchased_at": datetime(2026, 9, 1, 15, 0)}

    def test_expense_incurred_at(self):
        expense = ExpenseCreate.model_validate({
            "accountId": "acc-1",
            "category": "Software",
            "amount": 100.0,
            "incurredAt": "2026-09-02T00:30:00+01:00",
        })

        assert expense.incurred_at == datetime(2026, 9, 1, 23, 30)
