"""
Chart/Trend Formatter

Reshapes aggregator output into labelled, zero-filled time series.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .aggregator import UNALLOCATED, Dimension, ProfitAggregator, ProfitRow
from .classification import is_advertising_category
from .cost_lots import CogsMethod
from .errors import ValidationError
from .facts import FactSnapshot
from .metrics import percent_change, round_money
from .periods import Granularity, bucket_keys, period_key

CURRENT_PERIOD = "Current Period"
PREVIOUS_PERIOD = "Previous Period"


class ChartMetric:
    SALES = "sales"
    PROFIT = "profit"
    ADVERTISING = "advertising"
    RETURNS = "returns"

    ALL = (SALES, PROFIT, ADVERTISING, RETURNS)


PRODUCT_TREND_METRICS = ("sales", "units", "profit", "orders")


@dataclass
class Series:
    label: str
    data: List[float]


@dataclass
class ChartData:
    metric: str
    period: str
    start_date: Optional[str]
    end_date: Optional[str]
    labels: List[str]
    series: List[Series] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "period": self.period,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "labels": self.labels,
            "series": [{"label": s.label, "data": s.data} for s in self.series],
        }


def previous_window(start: date, end: date) -> Tuple[date, date]:
    """Window of identical width ending the day before start"""
    previous_end = start - timedelta(days=1)
    previous_start = previous_end - (end - start)
    return previous_start, previous_end


def fill_series(values: Dict[str, float], labels: List[str]) -> List[float]:
    return [round_money(values.get(label, 0.0)) for label in labels]


def align(data: List[float], length: int) -> List[float]:
    """Pad with zeros or trim to the given length"""
    if len(data) >= length:
        return data[:length]
    return data + [0.0] * (length - len(data))


def parse_metric(metric: Optional[str]) -> str:
    value = (metric or ChartMetric.SALES).lower()
    if value not in ChartMetric.ALL:
        raise ValidationError(f"Unsupported metric '{metric}'. Must be one of: {list(ChartMetric.ALL)}")
    return value


class ChartFormatter:
    """
    Time series over one snapshot.

    The snapshot window bounds the labels; missing buckets are zero.
    """

    def __init__(
        self,
        snapshot: FactSnapshot,
        start: date,
        end: date,
        granularity: Granularity,
        cogs_method: CogsMethod = CogsMethod.FIFO,
    ):
        self.snapshot = snapshot
        self.start = start
        self.end = end
        self.granularity = Granularity(granularity)
        self.aggregator = ProfitAggregator(snapshot, cogs_method)

    @property
    def labels(self) -> List[str]:
        return bucket_keys(self.start, self.end, self.granularity)

    def period_rows(self, sku: Optional[str] = None) -> Dict[str, ProfitRow]:
        rows = self.aggregator.breakdown(Dimension.PERIOD, self.granularity, sku=sku)
        return {row.period: row for row in rows}

    def advertising_by_period(self) -> Dict[str, float]:
        """Ad spend plus expenses booked under the advertising category"""
        values: Dict[str, float] = {}
        for spend in self.snapshot.ad_spend:
            key = period_key(spend.spent_on, self.granularity)
            values[key] = values.get(key, 0.0) + spend.spend
        for expense in self.snapshot.expenses:
            if is_advertising_category(expense.category):
                key = period_key(expense.incurred_at, self.granularity)
                values[key] = values.get(key, 0.0) + expense.amount
        return values

    def returns_by_period(self) -> Dict[str, float]:
        """Refunded amount plus return fees, by return date"""
        values: Dict[str, float] = {}
        for item in self.snapshot.returns:
            key = period_key(item.returned_at, self.granularity)
            values[key] = values.get(key, 0.0) + item.refund_amount + item.fee_amount
        return values

    def metric_series(self, metric: str, sku: Optional[str] = None) -> List[Series]:
        labels = self.labels

        if metric == ChartMetric.ADVERTISING:
            return [Series("Advertising Cost", fill_series(self.advertising_by_period(), labels))]

        if metric == ChartMetric.RETURNS:
            return [Series("Returns Cost", fill_series(self.returns_by_period(), labels))]

        rows = self.period_rows(sku)
        revenue = {key: row.sales_revenue for key, row in rows.items()}
        if metric == ChartMetric.PROFIT:
            profit = {key: row.net_profit for key, row in rows.items()}
            return [
                Series("Net Profit", fill_series(profit, labels)),
                Series("Sales Revenue", fill_series(revenue, labels)),
            ]
        return [Series("Sales Revenue", fill_series(revenue, labels))]

    def chart(self, metric: str, sku: Optional[str] = None) -> ChartData:
        metric = parse_metric(metric)
        return ChartData(
            metric=metric,
            period=self.granularity.value,
            start_date=self.start.isoformat(),
            end_date=self.end.isoformat(),
            labels=self.labels,
            series=self.metric_series(metric, sku),
        )

    def dashboard(self) -> ChartData:
        """Units, advertising, refunds and net profit on one set of labels"""
        labels = self.labels
        rows = self.period_rows()
        return ChartData(
            metric="dashboard",
            period=self.granularity.value,
            start_date=self.start.isoformat(),
            end_date=self.end.isoformat(),
            labels=labels,
            series=[
                Series("Units Sold", fill_series({k: r.units_sold for k, r in rows.items()}, labels)),
                Series("Advertising Cost", fill_series(self.advertising_by_period(), labels)),
                Series("Refunds", fill_series({k: r.total_refunds for k, r in rows.items()}, labels)),
                Series("Net Profit", fill_series({k: r.net_profit for k, r in rows.items()}, labels)),
            ],
        )

    def simple_trends(self) -> Dict[str, List]:
        labels = self.labels
        rows = self.period_rows()
        return {
            "labels": labels,
            "profit": fill_series({k: r.net_profit for k, r in rows.items()}, labels),
            "revenue": fill_series({k: r.sales_revenue for k, r in rows.items()}, labels),
        }

    def product_trends(self, metric: str = "sales", limit: int = 10) -> Dict[str, Any]:
        """
        Per-SKU daily values, newest date first, with the change from the
        previous day.
        """
        metric = (metric or "sales").lower()
        if metric not in PRODUCT_TREND_METRICS:
            raise ValidationError(f"Unsupported metric '{metric}'. Must be one of: {list(PRODUCT_TREND_METRICS)}")

        rows = self.aggregator.breakdown(Dimension.SKU_PERIOD, self.granularity)
        by_sku: Dict[str, Dict[str, ProfitRow]] = {}
        totals: Dict[str, float] = {}
        for row in rows:
            if row.sku == UNALLOCATED:
                continue
            by_sku.setdefault(row.sku, {})[row.period] = row
            totals[row.sku] = totals.get(row.sku, 0.0) + row.sales_revenue

        dates = list(reversed(self.labels))
        top_skus = sorted(totals, key=lambda sku: (-totals[sku], sku))[:limit]

        products = []
        for sku in top_skus:
            ascending = [_trend_value(by_sku[sku].get(label), metric) for label in self.labels]
            changes = [0.0] + [
                percent_change(current, previous) for previous, current in zip(ascending, ascending[1:])
            ]
            daily = [
                {"date": label, "value": value, "change_percent": change}
                for label, value, change in zip(self.labels, ascending, changes)
            ]
            daily.reverse()
            products.append({
                "sku": sku,
                "daily_values": daily,
                "chart_data": ascending,
            })

        return {"products": products, "dates": dates, "metric": metric}

    def country_map(self) -> List[Dict[str, Any]]:
        return [
            {"country": row.country, "profit": row.net_profit, "orders": row.order_count}
            for row in self.aggregator.breakdown(Dimension.COUNTRY)
        ]


def _trend_value(row: Optional[ProfitRow], metric: str) -> float:
    if row is None:
        return 0.0
    if metric == "units":
        return float(row.units_sold)
    if metric == "orders":
        return float(row.order_count)
    if metric == "profit":
        return row.net_profit
    return row.sales_revenue


def comparison_chart(current: ChartFormatter, previous: ChartFormatter, metric: str) -> ChartData:
    """
    Current vs previous period for one metric.

    Previous values are aligned to the current labels by position.
    """
    metric = parse_metric(metric)
    labels = current.labels
    current_series = current.metric_series(metric)[0]
    previous_series = previous.metric_series(metric)[0]

    return ChartData(
        metric=metric,
        period=current.granularity.value,
        start_date=current.start.isoformat(),
        end_date=current.end.isoformat(),
        labels=labels,
        series=[
            Series(CURRENT_PERIOD, current_series.data),
            Series(PREVIOUS_PERIOD, align(previous_series.data, len(labels))),
        ],
    )
