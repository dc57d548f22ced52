"""
Profit Aggregator

Single-pass profit pipeline over a FactSnapshot:

1. Attribute fees and refunds to order lines by revenue share
2. Cost each line from the cost lot ledger
3. Group lines by the requested dimension (polars group_by)
4. Allocate expenses to the same groups
5. Apply the profit metric calculator per group

Rows of every dimension add up to the ungrouped summary for the same
snapshot, within cent rounding per row.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import polars as pl
import structlog

from .allocation import (
    AllocationResult,
    allocate_by_key,
    marketplace_entries,
    revenue_shares,
    sku_entries,
    unallocated_fraction,
)
from .cost_lots import CogsMethod, CostLotLedger
from .facts import ExpenseFact, FactSnapshot, SalesFact
from .metrics import profit_metrics, round_money
from .periods import Granularity, period_key

logger = structlog.get_logger(__name__)

UNKNOWN_COUNTRY = "UNKNOWN"
UNASSIGNED_MARKETPLACE = "unassigned"
# Row key for expenses with no revenue to be shared over
UNALLOCATED = "unallocated"

# Marketplace region code -> ISO country code
COUNTRY_BY_REGION = {
    "US": "US",
    "CA": "CA",
    "MX": "MX",
    "BR": "BR",
    "UK": "GB",
    "GB": "GB",
    "IE": "IE",
    "DE": "DE",
    "FR": "FR",
    "IT": "IT",
    "ES": "ES",
    "NL": "NL",
    "BE": "BE",
    "SE": "SE",
    "PL": "PL",
    "TR": "TR",
    "AE": "AE",
    "SA": "SA",
    "EG": "EG",
    "IN": "IN",
    "JP": "JP",
    "AU": "AU",
    "SG": "SG",
}


def country_for_region(region: Optional[str]) -> str:
    """Country code for a marketplace region; UNKNOWN when unmapped"""
    if not region:
        return UNKNOWN_COUNTRY
    return COUNTRY_BY_REGION.get(region.strip().upper(), UNKNOWN_COUNTRY)


class Dimension(str, Enum):
    """Grouping applied to a profit breakdown"""
    NONE = "none"
    SKU = "sku"
    MARKETPLACE = "marketplace"
    COUNTRY = "country"
    PERIOD = "period"
    SKU_PERIOD = "sku_period"


DIMENSION_LABELS: Dict[Dimension, Tuple[str, ...]] = {
    Dimension.SKU: ("sku",),
    Dimension.MARKETPLACE: ("marketplace_id",),
    Dimension.COUNTRY: ("country",),
    Dimension.PERIOD: ("period",),
    Dimension.SKU_PERIOD: ("sku", "period"),
}

LINE_SCHEMA = {
    "order_id": pl.Utf8,
    "quantity": pl.Int64,
    "revenue": pl.Float64,
    "fees": pl.Float64,
    "refunds": pl.Float64,
    "cogs": pl.Float64,
    "uncosted": pl.Int64,
}


@dataclass(frozen=True)
class AttributedLine:
    """A sales line with its share of order costs"""
    line: SalesFact
    fees: float
    refunds: float
    cogs: float
    uncosted: int


@dataclass
class ProfitRow:
    """Profit figures for one group of a breakdown"""
    sales_revenue: float
    total_expenses: float
    total_fees: float
    total_refunds: float
    total_cogs: float
    gross_profit: float
    net_profit: float
    gross_margin: float
    net_margin: float
    units_sold: int
    order_count: int
    uncosted_units: int = 0
    sku: Optional[str] = None
    marketplace_id: Optional[str] = None
    marketplace_name: Optional[str] = None
    marketplace_code: Optional[str] = None
    country: Optional[str] = None
    period: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape without the labels of other dimensions"""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class ProfitSummary:
    """Ungrouped profit figures for a window"""
    sales_revenue: float
    total_expenses: float
    total_fees: float
    total_refunds: float
    total_cogs: float
    gross_profit: float
    net_profit: float
    gross_margin: float
    net_margin: float
    order_count: int
    units_sold: int
    uncosted_units: int
    period: Dict[str, Optional[str]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OrderLineProfit:
    """Profit of an individual order line"""
    line_id: str
    order_id: str
    sku: str
    marketplace_id: Optional[str]
    ordered_at: str
    quantity: int
    unit_price: float
    sales_revenue: float
    fees: float
    refunds: float
    cogs: float
    gross_profit: float
    expenses: float
    net_profit: float


def _build_row(totals: Dict[str, Any], expenses: float, labels: Dict[str, Optional[str]]) -> ProfitRow:
    revenue = totals.get("revenue", 0.0)
    fees = totals.get("fees", 0.0)
    refunds = totals.get("refunds", 0.0)
    cogs = totals.get("cogs", 0.0)
    metrics = profit_metrics(revenue, expenses, fees, refunds, cogs)

    return ProfitRow(
        sales_revenue=round_money(revenue),
        total_expenses=round_money(expenses),
        total_fees=round_money(fees),
        total_refunds=round_money(refunds),
        total_cogs=round_money(cogs),
        gross_profit=metrics.gross_profit,
        net_profit=metrics.net_profit,
        gross_margin=metrics.gross_margin,
        net_margin=metrics.net_margin,
        units_sold=int(totals.get("quantity", 0)),
        order_count=int(totals.get("order_count", 0)),
        uncosted_units=int(totals.get("uncosted", 0)),
        **labels,
    )


class ProfitAggregator:
    """
    Profit summary and breakdowns for one snapshot.

    Stateless apart from memoised line attribution, so repeated calls on the
    same snapshot return identical output.

    Example:
        aggregator = ProfitAggregator(snapshot)
        summary = aggregator.summary()
        by_sku = aggregator.breakdown(Dimension.SKU)
    """

    def __init__(self, snapshot: FactSnapshot, cogs_method: CogsMethod = CogsMethod.FIFO):
        self.snapshot = snapshot
        self.cogs_method = CogsMethod(cogs_method)
        self.ledger = CostLotLedger(snapshot.cost_lots)
        self._lines: Optional[List[AttributedLine]] = None

    # ------------------------------------------------------------------
    # Attribution
    # ------------------------------------------------------------------

    def attributed_lines(self) -> List[AttributedLine]:
        if self._lines is None:
            self._lines = self._attribute_lines()
        return self._lines

    def _attribute_lines(self) -> List[AttributedLine]:
        fees_by_order: Dict[str, float] = {}
        for fee in self.snapshot.fees:
            fees_by_order[fee.order_id] = fees_by_order.get(fee.order_id, 0.0) + fee.amount

        refunds_by_order: Dict[str, float] = {}
        for refund in self.snapshot.refunds:
            refunds_by_order[refund.order_id] = refunds_by_order.get(refund.order_id, 0.0) + refund.amount

        costs = self.ledger.cost_sales_lines(
            self.snapshot.sales,
            as_of=self.snapshot.window_end,
            method=self.cogs_method,
        )

        attributed: List[AttributedLine] = []
        for order_id, lines in self.snapshot.order_lines().items():
            shares = revenue_shares([line.line_revenue for line in lines])
            order_fees = fees_by_order.get(order_id, 0.0)
            order_refunds = refunds_by_order.get(order_id, 0.0)

            for line, share in zip(lines, shares):
                consumption = costs.get(line.line_id)
                attributed.append(
                    AttributedLine(
                        line=line,
                        fees=order_fees * share,
                        refunds=order_refunds * share,
                        cogs=consumption.cost if consumption else 0.0,
                        uncosted=consumption.uncosted if consumption else line.quantity,
                    )
                )

        return attributed

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def country_of(self, marketplace_id: Optional[str]) -> str:
        marketplace = self.snapshot.marketplaces.get(marketplace_id) if marketplace_id else None
        return country_for_region(marketplace.region if marketplace else None)

    def _label_value(self, label: str, line: SalesFact, granularity: Granularity) -> str:
        if label == "sku":
            return line.sku
        if label == "marketplace_id":
            return line.marketplace_id or UNASSIGNED_MARKETPLACE
        if label == "country":
            return self.country_of(line.marketplace_id)
        return period_key(line.ordered_at, granularity)

    def _line_frame(self, labels: Tuple[str, ...], granularity: Granularity, sku: Optional[str] = None) -> pl.DataFrame:
        schema = {label: pl.Utf8 for label in labels}
        schema.update(LINE_SCHEMA)

        records = []
        for attributed in self.attributed_lines():
            line = attributed.line
            if sku is not None and line.sku != sku:
                continue
            record = {label: self._label_value(label, line, granularity) for label in labels}
            record.update({
                "order_id": line.order_id,
                "quantity": line.quantity,
                "revenue": line.line_revenue,
                "fees": attributed.fees,
                "refunds": attributed.refunds,
                "cogs": attributed.cogs,
                "uncosted": attributed.uncosted,
            })
            records.append(record)

        return pl.DataFrame(records, schema=schema)

    def _group_totals(
        self,
        labels: Tuple[str, ...],
        granularity: Granularity,
        sku: Optional[str] = None,
    ) -> Dict[Tuple[str, ...], Dict[str, Any]]:
        frame = self._line_frame(labels, granularity, sku)
        grouped = frame.group_by(list(labels), maintain_order=True).agg([
            pl.col("quantity").sum(),
            pl.col("revenue").sum(),
            pl.col("fees").sum(),
            pl.col("refunds").sum(),
            pl.col("cogs").sum(),
            pl.col("uncosted").sum(),
            pl.col("order_id").n_unique().alias("order_count"),
        ])
        return {
            tuple(row[label] for label in labels): row
            for row in grouped.iter_rows(named=True)
        }

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def _revenue_by(self, totals: Dict[Tuple[str, ...], Dict[str, Any]]) -> Dict[str, float]:
        return {key[0]: values["revenue"] for key, values in totals.items()}

    def _sku_expenses(self) -> AllocationResult:
        totals = self._group_totals(("sku",), Granularity.DAY)
        return allocate_by_key(self.snapshot.expenses, self._revenue_by(totals), sku_entries)

    def _incurred_by_period(
        self,
        amount_of: Callable[[ExpenseFact], float],
        granularity: Granularity,
    ) -> Dict[str, float]:
        """Expense amounts keyed by the bucket they were incurred in"""
        by_period: Dict[str, float] = {}
        for expense in self.snapshot.expenses:
            amount = amount_of(expense)
            if amount:
                key = period_key(expense.incurred_at, granularity)
                by_period[key] = by_period.get(key, 0.0) + amount
        return by_period

    def _keyed(self, result: AllocationResult) -> Dict[Tuple[str, ...], float]:
        allocated = {(key,): amount for key, amount in result.by_key.items()}
        if result.unattributed:
            allocated[(UNALLOCATED,)] = result.unattributed
        return allocated

    def _expenses_for(
        self,
        dimension: Dimension,
        granularity: Granularity,
        totals: Dict[Tuple[str, ...], Dict[str, Any]],
    ) -> Dict[Tuple[str, ...], float]:
        expenses = self.snapshot.expenses

        if dimension == Dimension.SKU:
            return self._keyed(allocate_by_key(expenses, self._revenue_by(totals), sku_entries))

        if dimension in (Dimension.MARKETPLACE, Dimension.COUNTRY):
            marketplace_totals = (
                totals if dimension == Dimension.MARKETPLACE
                else self._group_totals(("marketplace_id",), granularity)
            )
            group_of = None if dimension == Dimension.MARKETPLACE else self.country_of
            result = allocate_by_key(
                expenses,
                self._revenue_by(marketplace_totals),
                marketplace_entries,
                group_of=group_of,
            )
            return self._keyed(result)

        if dimension == Dimension.PERIOD:
            by_period = self._incurred_by_period(lambda expense: expense.amount, granularity)
            return {(key,): amount for key, amount in by_period.items()}

        # SKU x period: each SKU's window allocation spread over its buckets by revenue
        result = self._sku_expenses()
        buckets_by_sku: Dict[str, Dict[str, float]] = {}
        for (sku, period), values in totals.items():
            buckets_by_sku.setdefault(sku, {})[period] = values["revenue"]

        allocated: Dict[Tuple[str, ...], float] = {}
        for sku, amount in result.by_key.items():
            buckets = buckets_by_sku.get(sku)
            if buckets:
                spread = dict(zip(buckets, [amount * share for share in revenue_shares(list(buckets.values()))]))
            else:
                # no sales: explicit entries stay in the bucket they were incurred in
                spread = self._incurred_by_period(
                    lambda expense, sku=sku: sum(
                        expense.amount * (percentage / 100)
                        for key, percentage in sku_entries(expense)
                        if key == sku
                    ),
                    granularity,
                )
            for period, value in spread.items():
                allocated[(sku, period)] = allocated.get((sku, period), 0.0) + value

        if result.unattributed:
            pool = self._incurred_by_period(
                lambda expense: expense.amount * unallocated_fraction(sku_entries(expense)),
                granularity,
            )
            for period, value in pool.items():
                allocated[(UNALLOCATED, period)] = value
        return allocated

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def summary(self, sku: Optional[str] = None) -> ProfitSummary:
        """
        Ungrouped totals for the snapshot.

        With a SKU the summary is that SKU's row of the SKU breakdown.
        """
        if sku is not None:
            rows = self.breakdown(Dimension.SKU, sku=sku)
            row = rows[0] if rows else _build_row({}, 0.0, {"sku": sku})
            return ProfitSummary(
                sales_revenue=row.sales_revenue,
                total_expenses=row.total_expenses,
                total_fees=row.total_fees,
                total_refunds=row.total_refunds,
                total_cogs=row.total_cogs,
                gross_profit=row.gross_profit,
                net_profit=row.net_profit,
                gross_margin=row.gross_margin,
                net_margin=row.net_margin,
                order_count=row.order_count,
                units_sold=row.units_sold,
                uncosted_units=row.uncosted_units,
                period=self._period(),
            )

        lines = self.attributed_lines()
        revenue = sum(a.line.line_revenue for a in lines)
        fees = sum(a.fees for a in lines)
        refunds = sum(a.refunds for a in lines)
        cogs = sum(a.cogs for a in lines)
        expenses = sum(expense.amount for expense in self.snapshot.expenses)
        metrics = profit_metrics(revenue, expenses, fees, refunds, cogs)

        return ProfitSummary(
            sales_revenue=round_money(revenue),
            total_expenses=round_money(expenses),
            total_fees=round_money(fees),
            total_refunds=round_money(refunds),
            total_cogs=round_money(cogs),
            gross_profit=metrics.gross_profit,
            net_profit=metrics.net_profit,
            gross_margin=metrics.gross_margin,
            net_margin=metrics.net_margin,
            order_count=len({a.line.order_id for a in lines}),
            units_sold=sum(a.line.quantity for a in lines),
            uncosted_units=sum(a.uncosted for a in lines),
            period=self._period(),
        )

    def breakdown(
        self,
        dimension: Dimension,
        granularity: Granularity = Granularity.DAY,
        sku: Optional[str] = None,
    ) -> List[ProfitRow]:
        """
        Profit rows grouped by a dimension.

        Args:
            dimension: Grouping to apply
            granularity: Bucket size for period groupings
            sku: Restrict rows to one SKU; its expenses are still allocated
                against the revenue of every SKU in the window

        Returns:
            Rows sorted by descending revenue, or ascending period for trends
        """
        dimension = Dimension(dimension)
        granularity = Granularity(granularity)

        if dimension == Dimension.NONE:
            summary = self.summary(sku)
            row = ProfitRow(**{k: v for k, v in asdict(summary).items() if k != "period"})
            return [row]

        if sku is not None and dimension == Dimension.PERIOD:
            rows = self.breakdown(Dimension.SKU_PERIOD, granularity, sku)
            for row in rows:
                row.sku = None
            return rows

        if sku is not None and dimension in (Dimension.MARKETPLACE, Dimension.COUNTRY):
            return self._sku_split_breakdown(dimension, granularity, sku)

        labels = DIMENSION_LABELS[dimension]
        totals = self._group_totals(labels, granularity)
        expenses = self._expenses_for(dimension, granularity, totals)

        rows = []
        for key in list(totals) + [k for k in expenses if k not in totals]:
            if sku is not None and key[0] != sku:
                continue
            rows.append(
                _build_row(totals.get(key, {}), expenses.get(key, 0.0), self._labels(labels, key))
            )

        self._sort(rows, dimension)
        logger.debug("Profit breakdown computed", dimension=dimension.value, rows=len(rows))
        return rows

    def order_lines(self) -> List[OrderLineProfit]:
        """Per-line profit; each line takes its revenue share of its SKU's expenses"""
        sku_expenses = self._sku_expenses()
        sku_revenue: Dict[str, float] = {}
        for attributed in self.attributed_lines():
            sku_revenue[attributed.line.sku] = sku_revenue.get(attributed.line.sku, 0.0) + attributed.line.line_revenue

        results = []
        for attributed in self.attributed_lines():
            line = attributed.line
            revenue_total = sku_revenue.get(line.sku, 0.0)
            share = line.line_revenue / revenue_total if revenue_total > 0 else 0.0
            expenses = sku_expenses.get(line.sku) * share
            metrics = profit_metrics(line.line_revenue, expenses, attributed.fees, attributed.refunds, attributed.cogs)
            results.append(
                OrderLineProfit(
                    line_id=line.line_id,
                    order_id=line.order_id,
                    sku=line.sku,
                    marketplace_id=line.marketplace_id,
                    ordered_at=line.ordered_at.isoformat(),
                    quantity=line.quantity,
                    unit_price=round_money(line.unit_price),
                    sales_revenue=round_money(line.line_revenue),
                    fees=round_money(attributed.fees),
                    refunds=round_money(attributed.refunds),
                    cogs=round_money(attributed.cogs),
                    gross_profit=metrics.gross_profit,
                    expenses=round_money(expenses),
                    net_profit=metrics.net_profit,
                )
            )

        results.sort(key=lambda r: (r.ordered_at, r.order_id, r.line_id), reverse=True)
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _sku_split_breakdown(self, dimension: Dimension, granularity: Granularity, sku: str) -> List[ProfitRow]:
        """One SKU's rows by marketplace or country; its expenses split by revenue"""
        labels = DIMENSION_LABELS[dimension]
        totals = self._group_totals(labels, granularity, sku=sku)
        sku_expense = self._sku_expenses().get(sku)
        if not totals:
            if not sku_expense:
                return []
            fallback = UNASSIGNED_MARKETPLACE if dimension == Dimension.MARKETPLACE else UNKNOWN_COUNTRY
            return [_build_row({}, sku_expense, self._labels(labels, (fallback,)))]
        shares = revenue_shares([values["revenue"] for values in totals.values()])

        rows = [
            _build_row(values, sku_expense * share, self._labels(labels, key))
            for (key, values), share in zip(totals.items(), shares)
        ]
        self._sort(rows, dimension)
        return rows

    def _labels(self, labels: Tuple[str, ...], key: Tuple[str, ...]) -> Dict[str, Optional[str]]:
        values: Dict[str, Optional[str]] = dict(zip(labels, key))
        marketplace_id = values.get("marketplace_id")
        if marketplace_id is not None:
            marketplace = self.snapshot.marketplaces.get(marketplace_id)
            if marketplace is not None:
                values["marketplace_name"] = marketplace.name
                values["marketplace_code"] = marketplace.code
        return values

    def _sort(self, rows: List[ProfitRow], dimension: Dimension) -> None:
        if dimension == Dimension.PERIOD:
            rows.sort(key=lambda row: row.period or "")
        elif dimension == Dimension.SKU_PERIOD:
            rows.sort(key=lambda row: (row.sku or "", row.period or ""))
        else:
            rows.sort(key=lambda row: (-row.sales_revenue, row.sku or row.marketplace_id or row.country or ""))

    def _period(self) -> Dict[str, Optional[str]]:
        start = self.snapshot.window_start
        end = self.snapshot.window_end
        return {
            "start_date": start.date().isoformat() if start else None,
            "end_date": end.date().isoformat() if end else None,
        }
