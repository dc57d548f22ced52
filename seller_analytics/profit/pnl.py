"""
P&L Report Builder

Hierarchical profit-and-loss report over a fixed period ladder: month to
date plus the trailing full calendar months, newest first. Each period
re-runs the profit aggregator on its own slice of one snapshot and adds
child breakdowns for advertising, refund cost, marketplace fees and
indirect expenses.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import structlog

from .aggregator import ProfitAggregator
from .classification import (
    REFUNDED_PROMOTION,
    REFUNDED_REFERRAL_FEE,
    campaign_channel,
    fee_category,
    refund_component,
)
from .cost_lots import CogsMethod
from .facts import FactSnapshot
from .filters import end_of_day, start_of_day
from .metrics import acos, ratio_percent, roi, round_money

logger = structlog.get_logger(__name__)

RETURN_PROCESSING_FEES = "Return processing fees"
UNSELLABLE_PRODUCT_COST = "Unsellable product cost"
VALUE_OF_RETURNED_ITEMS = "Value of returned items"

# Refund components that reduce refund cost
REFUND_CREDITS = {REFUNDED_REFERRAL_FEE, REFUNDED_PROMOTION, VALUE_OF_RETURNED_ITEMS}


@dataclass(frozen=True)
class ReportPeriod:
    key: str
    label: str
    start_date: date
    end_date: date
    month_to_date: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "month_to_date": self.month_to_date,
        }


@dataclass
class PeriodValue:
    period: str
    value: float


@dataclass
class PLMetricRow:
    parameter: str
    is_expandable: bool
    periods: List[PeriodValue]
    total: float
    children: List["PLMetricRow"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "parameter": self.parameter,
            "is_expandable": self.is_expandable,
            "periods": [{"period": p.period, "value": p.value} for p in self.periods],
            "total": self.total,
        }
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass
class PLReport:
    periods: List[ReportPeriod]
    metrics: List[PLMetricRow]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "periods": [p.to_dict() for p in self.periods],
            "metrics": [m.to_dict() for m in self.metrics],
        }


def _shift_month(first_of_month: date, months: int) -> date:
    index = first_of_month.year * 12 + (first_of_month.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


def build_period_ladder(today: date, trailing_months: int = 12) -> List[ReportPeriod]:
    """
    Month to date followed by the preceding full months, newest first.

    Keys are YYYY-MM-DD (today) for month to date and YYYY-MM otherwise.
    """
    first = today.replace(day=1)
    month_name = calendar.month_name[today.month]
    periods = [
        ReportPeriod(
            key=today.isoformat(),
            label=f"1-{today.day} {month_name} {today.year}",
            start_date=first,
            end_date=today,
            month_to_date=True,
        )
    ]

    for offset in range(1, trailing_months + 1):
        start = _shift_month(first, offset)
        last_day = calendar.monthrange(start.year, start.month)[1]
        periods.append(
            ReportPeriod(
                key=f"{start.year}-{start.month:02d}",
                label=f"{calendar.month_name[start.month]} {start.year}",
                start_date=start,
                end_date=start.replace(day=last_day),
            )
        )

    return periods


@dataclass
class PeriodFigures:
    """Top-line values and child breakdowns for one period"""
    values: Dict[str, float] = field(default_factory=dict)
    children: Dict[str, Dict[str, float]] = field(default_factory=dict)


def _add(bucket: Dict[str, float], key: str, amount: float) -> None:
    bucket[key] = bucket.get(key, 0.0) + amount


class PnLReportBuilder:
    """
    Builds the P&L ladder from a snapshot covering every period.

    Example:
        builder = PnLReportBuilder(snapshot, today=date(2026, 10, 19))
        report = builder.build()
    """

    def __init__(
        self,
        snapshot: FactSnapshot,
        today: Optional[date] = None,
        trailing_months: int = 12,
        cogs_method: CogsMethod = CogsMethod.FIFO,
    ):
        self.snapshot = snapshot
        self.today = today or date.today()
        self.trailing_months = trailing_months
        self.cogs_method = cogs_method

    def periods(self) -> List[ReportPeriod]:
        return build_period_ladder(self.today, self.trailing_months)

    def period_figures(self, period: ReportPeriod) -> PeriodFigures:
        sliced = self.snapshot.within(start_of_day(period.start_date), end_of_day(period.end_date))
        aggregator = ProfitAggregator(sliced, self.cogs_method)
        summary = aggregator.summary()
        figures = PeriodFigures()

        advertising: Dict[str, float] = {}
        attributed_sales = 0.0
        for spend in sliced.ad_spend:
            _add(advertising, campaign_channel(spend.campaign_name), spend.spend)
            attributed_sales += spend.attributed_sales
        advertising_total = sum(advertising.values())

        fees: Dict[str, float] = {}
        for fee in sliced.fees:
            _add(fees, fee_category(fee.fee_type), fee.amount)

        refund_cost: Dict[str, float] = {}
        for refund in sliced.refunds:
            component = refund_component(refund.reason_code)
            sign = -1.0 if component in REFUND_CREDITS else 1.0
            _add(refund_cost, component, sign * refund.amount)

        returned_units = 0
        sellable_units = 0
        for item in sliced.returns:
            unit_cost = aggregator.ledger.weighted_average_cost(item.sku, self.snapshot.account_id)
            returned_units += item.quantity_returned
            _add(refund_cost, RETURN_PROCESSING_FEES, item.fee_amount)
            _add(refund_cost, VALUE_OF_RETURNED_ITEMS, -item.quantity_returned * unit_cost)
            if item.is_sellable:
                sellable_units += item.quantity_returned
            else:
                _add(refund_cost, UNSELLABLE_PRODUCT_COST, item.quantity_returned * unit_cost)

        expenses: Dict[str, float] = {}
        for expense in sliced.expenses:
            _add(expenses, expense.category, expense.amount)

        orders = summary.order_count
        refund_count = len({refund.order_id for refund in sliced.refunds})

        figures.values = {
            "Sales": summary.sales_revenue,
            "Units": summary.units_sold,
            "Orders": orders,
            "Refunds": refund_count,
            "Advertising cost": advertising_total,
            "Refund cost": sum(refund_cost.values()),
            "Amazon fees": summary.total_fees,
            "Cost of goods": summary.total_cogs,
            "Gross profit": summary.gross_profit,
            "Indirect expenses": summary.total_expenses,
            "Net profit": summary.net_profit,
            "Estimated payout": (
                summary.sales_revenue - summary.total_fees - summary.total_refunds - advertising_total
            ),
            "Margin": summary.net_margin,
            "ROI": roi(summary.net_profit, summary.total_cogs),
            "ACOS": acos(advertising_total, attributed_sales),
            "% Refunds": ratio_percent(refund_count, orders),
            "Sellable returns": ratio_percent(sellable_units, returned_units),
        }
        figures.children = {
            "Advertising cost": advertising,
            "Refund cost": refund_cost,
            "Amazon fees": fees,
            "Indirect expenses": expenses,
        }
        return figures

    def build(self) -> PLReport:
        periods = self.periods()
        figures = {period.key: self.period_figures(period) for period in periods}

        metrics = [
            self._row("Sales", periods, figures),
            self._row("Units", periods, figures),
            self._row("Orders", periods, figures),
            self._row("Refunds", periods, figures),
            self._row("Advertising cost", periods, figures),
            self._row("Refund cost", periods, figures),
            self._row("Amazon fees", periods, figures),
            self._row("Cost of goods", periods, figures),
            self._row("Gross profit", periods, figures),
            self._row("Indirect expenses", periods, figures),
            self._row("Net profit", periods, figures),
            self._row("Estimated payout", periods, figures),
            self._row("Margin", periods, figures, ratio=True),
            self._row("ROI", periods, figures, ratio=True),
            self._row("ACOS", periods, figures, ratio=True),
            self._row("% Refunds", periods, figures, ratio=True),
            self._row("Sellable returns", periods, figures, ratio=True),
        ]

        logger.info(
            "P&L report built",
            account_id=self.snapshot.account_id,
            periods=len(periods),
            today=self.today.isoformat(),
        )
        return PLReport(periods=periods, metrics=metrics)

    def _row(
        self,
        parameter: str,
        periods: List[ReportPeriod],
        figures: Dict[str, PeriodFigures],
        ratio: bool = False,
    ) -> PLMetricRow:
        values = [
            PeriodValue(period=p.key, value=round_money(figures[p.key].values.get(parameter, 0.0)))
            for p in periods
        ]
        children = self._children(parameter, periods, figures)
        return PLMetricRow(
            parameter=parameter,
            is_expandable=bool(children),
            periods=values,
            # percentages are not summable across periods
            total=0.0 if ratio else round_money(sum(v.value for v in values)),
            children=children,
        )

    def _children(
        self,
        parameter: str,
        periods: List[ReportPeriod],
        figures: Dict[str, PeriodFigures],
    ) -> List[PLMetricRow]:
        names: List[str] = []
        for period in periods:
            for name in figures[period.key].children.get(parameter, {}):
                if name not in names:
                    names.append(name)

        rows = []
        for name in sorted(names):
            values = [
                PeriodValue(
                    period=p.key,
                    value=round_money(figures[p.key].children.get(parameter, {}).get(name, 0.0)),
                )
                for p in periods
            ]
            rows.append(
                PLMetricRow(
                    parameter=name,
                    is_expandable=False,
                    periods=values,
                    total=round_money(sum(v.value for v in values)),
                )
            )
        return rows
