"""
Unit Tests - Returns Summary
"""
import pytest

from seller_analytics.profit.facts import ReturnFact
from seller_analytics.profit.periods import Granularity
from seller_analytics.services.returns import summarize_returns


@pytest.fixture
def return_facts(sample_returns_df):
    return [ReturnFact(**row) for row in sample_returns_df.iter_rows(named=True)]


class TestSummarizeReturns:

    def test_totals(self, return_facts):
        summary = summarize_returns(return_facts)

        assert summary["total_returned_units"] == 4
        assert summary["sellable_units"] == 1
        assert summary["unsellable_units"] == 3
        assert summary["lost_units"] == 3
        assert summary["total_refund_amount"] == 85.0
        assert summary["total_fee_amount"] == 5.0

    def test_groupings(self, return_facts):
        summary = summarize_returns(return_facts)

        assert summary["by_reason_code"]["DEFECTIVE"] == {"units": 3, "refund_amount": 35.0, "fee_amount": 5.0}
        assert summary["by_marketplace"]["mp-uk"]["units"] == 2
        assert [t["period"] for t in summary["trends"]] == ["2026-09-01", "2026-09-02"]

    def test_monthly_trends(self, return_facts):
        summary = summarize_returns(return_facts, Granularity.MONTH)

        assert summary["trends"] == [{"period": "2026-09", "units": 4, "refund_amount": 85.0, "fee_amount": 5.0}]

    def test_empty(self):
        summary = summarize_returns([])

        assert summary["total_returned_units"] == 0
        assert summary["total_refund_amount"] == 0.0
        assert summary["trends"] == []
