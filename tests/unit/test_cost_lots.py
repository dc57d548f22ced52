"""
Unit Tests - Cost Lot Ledger
"""
import pytest
from datetime import datetime

from seller_analytics.profit.cost_lots import CogsMethod, CostLotLedger, lot_total_cost
from tests.factories import ACCOUNT_ID, lot, sale


@pytest.fixture
def ledger() -> CostLotLedger:
    # Inserted out of order on purpose
    return CostLotLedger([
        lot("lot-2", "SKU-A", 5, 3.0, datetime(2026, 1, 2)),
        lot("lot-1", "SKU-A", 10, 2.0, datetime(2026, 1, 1)),
    ])


class TestResolveCogs:
    """Tests for FIFO consumption"""

    def test_fifo_spans_lots_oldest_first(self, ledger):
        assert ledger.resolve_cogs("SKU-A", ACCOUNT_ID, 12) == 26.0

    def test_consumption_slices(self, ledger):
        consumption = ledger.consume("SKU-A", ACCOUNT_ID, 12)

        assert [(s.lot_id, s.quantity) for s in consumption.slices] == [("lot-1", 10), ("lot-2", 2)]
        assert consumption.uncosted == 0

    def test_no_lots_costs_zero(self, ledger):
        consumption = ledger.consume("SKU-Z", ACCOUNT_ID, 4)

        assert consumption.cost == 0.0
        assert consumption.uncosted == 4

    def test_shortfall_is_left_uncosted(self, ledger):
        consumption = ledger.consume("SKU-A", ACCOUNT_ID, 20)

        assert consumption.cost == 10 * 2.0 + 5 * 3.0
        assert consumption.consumed == 15
        assert consumption.uncosted == 5

    def test_as_of_excludes_later_lots(self, ledger):
        assert ledger.resolve_cogs("SKU-A", ACCOUNT_ID, 12, as_of=datetime(2026, 1, 1, 12)) == 20.0

    def test_other_account_lots_are_ignored(self, ledger):
        assert ledger.resolve_cogs("SKU-A", "acc-2", 3) == 0.0

    def test_shipment_cost_only_in_full_lot_total(self):
        shipped = lot("lot-9", "SKU-S", 4, 5.0, datetime(2026, 1, 1), shipment_cost=6.0)
        ledger = CostLotLedger([shipped])

        assert ledger.resolve_cogs("SKU-S", ACCOUNT_ID, 4) == 20.0
        assert lot_total_cost(shipped) == 26.0


class TestCostSalesLines:
    """Tests for per-line costing"""

    def test_lines_add_up_to_total_quantity(self, ledger):
        lines = [
            sale("l-2", "o-2", "SKU-A", 7, 10.0, datetime(2026, 2, 2)),
            sale("l-1", "o-1", "SKU-A", 5, 10.0, datetime(2026, 2, 1)),
        ]

        costs = ledger.cost_sales_lines(lines)

        # earliest line draws from the oldest lot
        assert costs["l-1"].cost == 10.0
        assert costs["l-2"].cost == 5 * 2.0 + 2 * 3.0
        assert costs["l-1"].cost + costs["l-2"].cost == ledger.resolve_cogs("SKU-A", ACCOUNT_ID, 12)

    def test_weighted_average_method(self, ledger):
        lines = [sale("l-1", "o-1", "SKU-A", 3, 10.0, datetime(2026, 2, 1))]

        costs = ledger.cost_sales_lines(lines, method=CogsMethod.WEIGHTED_AVERAGE)

        assert costs["l-1"].cost == pytest.approx(3 * (35.0 / 15))

    def test_weighted_average_cost(self, ledger):
        assert ledger.weighted_average_cost("SKU-A") == pytest.approx(35.0 / 15)
        assert ledger.weighted_average_cost("SKU-Z") == 0.0
