"""
Unit Tests - Chart Formatter
"""
import pytest
from dataclasses import replace
from datetime import date, datetime

from seller_analytics.profit.charts import (
    CURRENT_PERIOD,
    PREVIOUS_PERIOD,
    ChartFormatter,
    comparison_chart,
    previous_window,
)
from seller_analytics.profit.errors import ValidationError
from seller_analytics.profit.periods import Granularity
from tests.factories import sale


@pytest.fixture
def formatter(sample_snapshot) -> ChartFormatter:
    return ChartFormatter(sample_snapshot, date(2026, 9, 1), date(2026, 9, 4), Granularity.DAY)


class TestPreviousWindow:

    @pytest.mark.parametrize("start,end", [
        (date(2026, 9, 10), date(2026, 9, 19)),
        (date(2026, 3, 1), date(2026, 3, 31)),
        (date(2026, 1, 1), date(2026, 1, 1)),
    ])
    def test_same_width_ending_day_before(self, start, end):
        previous_start, previous_end = previous_window(start, end)

        assert (start - previous_end).days == 1
        assert previous_end - previous_start == end - start


class TestChartFormatter:
    """Tests for labelled series"""

    def test_labels_zero_filled(self, formatter):
        chart = formatter.chart("sales")

        assert chart.labels == ["2026-09-01", "2026-09-02", "2026-09-03", "2026-09-04"]
        assert chart.series[0].label == "Sales Revenue"
        assert chart.series[0].data == [100.0, 30.0, 50.0, 0.0]

    def test_profit_series(self, formatter):
        chart = formatter.chart("profit")

        assert [s.label for s in chart.series] == ["Net Profit", "Sales Revenue"]
        assert chart.series[0].data == [46.0, -80.5, 30.0, 0.0]

    def test_advertising_and_returns(self, formatter):
        assert formatter.chart("advertising").series[0].data == [12.0, 0.0, 0.0, 0.0]
        assert formatter.chart("returns").series[0].data == [0.0, 0.0, 17.0, 0.0]

    def test_unknown_metric(self, formatter):
        with pytest.raises(ValidationError):
            formatter.chart("pageviews")

    def test_dashboard(self, formatter):
        chart = formatter.dashboard().to_dict()

        assert [s["label"] for s in chart["series"]] == ["Units Sold", "Advertising Cost", "Refunds", "Net Profit"]
        assert chart["series"][0]["data"] == [3.0, 3.0, 1.0, 0.0]

    def test_product_trends(self, formatter):
        trends = formatter.product_trends("sales", limit=5)

        assert [p["sku"] for p in trends["products"]] == ["SKU-B", "SKU-A"]
        sku_b = trends["products"][0]
        assert sku_b["chart_data"] == [70.0, 0.0, 50.0, 0.0]
        assert sku_b["daily_values"][0] == {"date": "2026-09-04", "value": 0.0, "change_percent": -100.0}
        assert trends["dates"][0] == "2026-09-04"

    def test_product_trends_limit(self, formatter):
        assert len(formatter.product_trends("units", limit=1)["products"]) == 1

    def test_product_profit_matches_sku_total(self, formatter):
        trends = formatter.product_trends("profit", limit=5)

        sku_a = trends["products"][1]
        assert sku_a["sku"] == "SKU-A"
        assert sku_a["chart_data"] == [-13.0, -10.5, 0.0, 0.0]

    def test_product_trends_skip_unallocated_expenses(self, sample_snapshot):
        snapshot = replace(
            sample_snapshot,
            sales=(sale("l-1", "o-1", "SKU-A", 1, 0.0, datetime(2026, 9, 1)),),
            fees=(),
            refunds=(),
        )
        formatter = ChartFormatter(snapshot, date(2026, 9, 1), date(2026, 9, 4), Granularity.DAY)

        trends = formatter.product_trends("profit", limit=5)

        assert [p["sku"] for p in trends["products"]] == ["SKU-A"]

    def test_country_map(self, formatter):
        assert formatter.country_map() == [
            {"country": "US", "profit": -7.33, "orders": 2},
            {"country": "GB", "profit": 2.83, "orders": 1},
        ]

    def test_comparison(self, sample_snapshot, formatter):
        previous = ChartFormatter(sample_snapshot.within(None, None), date(2026, 8, 28), date(2026, 8, 31), "day")

        chart = comparison_chart(formatter, previous, "sales")

        assert [s.label for s in chart.series] == [CURRENT_PERIOD, PREVIOUS_PERIOD]
        assert len(chart.series[1].data) == len(chart.labels)
