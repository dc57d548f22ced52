"""
Financial fact records consumed by the profit engine.

Facts are read models supplied by ingestion collaborators. They are frozen:
returns and refunds arrive as separate facts, never as edits to a sale.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class CostMethod(str, Enum):
    """How a cost lot was recorded"""
    BATCH = "BATCH"
    TIME_PERIOD = "TIME_PERIOD"
    WEIGHTED_AVERAGE = "WEIGHTED_AVERAGE"


class ExpenseType(str, Enum):
    """Discretionary expense recurrence"""
    FIXED = "fixed"
    RECURRING = "recurring"
    ONE_TIME = "one-time"


@dataclass(frozen=True)
class Marketplace:
    id: str
    name: str
    code: str
    region: Optional[str] = None


@dataclass(frozen=True)
class SalesFact:
    """One order line"""
    line_id: str
    order_id: str
    sku: str
    marketplace_id: Optional[str]
    account_id: str
    quantity: int
    unit_price: float
    line_revenue: float
    ordered_at: datetime


@dataclass(frozen=True)
class FeeFact:
    order_id: str
    fee_type: str
    amount: float
    posted_at: datetime


@dataclass(frozen=True)
class RefundFact:
    order_id: str
    reason_code: Optional[str]
    amount: float
    refunded_at: datetime


@dataclass(frozen=True)
class ReturnFact:
    """Physical return event, independent of any refund"""
    order_id: str
    sku: str
    quantity_returned: int
    refund_amount: float
    fee_amount: float
    is_sellable: bool
    reason_code: Optional[str]
    returned_at: datetime
    marketplace_id: Optional[str] = None


@dataclass(frozen=True)
class CostLot:
    """Inbound inventory purchase with its own unit cost"""
    id: str
    sku: str
    account_id: str
    quantity: int
    unit_cost: float
    purchased_at: datetime
    shipment_cost: Optional[float] = None
    cost_method: CostMethod = CostMethod.WEIGHTED_AVERAGE
    marketplace_id: Optional[str] = None
    batch_id: Optional[str] = None


@dataclass(frozen=True)
class AllocatedProduct:
    sku: str
    percentage: float


@dataclass(frozen=True)
class ExpenseFact:
    id: str
    account_id: str
    category: str
    amount: float
    incurred_at: datetime
    marketplace_id: Optional[str] = None
    allocated_products: Tuple[AllocatedProduct, ...] = ()
    type: ExpenseType = ExpenseType.ONE_TIME


@dataclass(frozen=True)
class AdSpendFact:
    """Daily advertising spend for one campaign"""
    campaign_id: str
    campaign_name: str
    spend: float
    attributed_sales: float
    spent_on: date
    marketplace_id: Optional[str] = None


def _in_window(value: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


@dataclass(frozen=True)
class FactSnapshot:
    """
    Consistent set of facts for one reporting request.

    Fees and refunds are anchored to their order: they belong to the window
    when their order does. Cost lots are history, kept up to the window end.
    """
    account_id: str
    sales: Tuple[SalesFact, ...] = ()
    fees: Tuple[FeeFact, ...] = ()
    refunds: Tuple[RefundFact, ...] = ()
    returns: Tuple[ReturnFact, ...] = ()
    expenses: Tuple[ExpenseFact, ...] = ()
    cost_lots: Tuple[CostLot, ...] = ()
    ad_spend: Tuple[AdSpendFact, ...] = ()
    marketplaces: Dict[str, Marketplace] = field(default_factory=dict)
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    def within(self, start: Optional[datetime], end: Optional[datetime]) -> "FactSnapshot":
        """Restrict every fact collection to the inclusive window [start, end]."""
        sales = tuple(s for s in self.sales if _in_window(s.ordered_at, start, end))
        order_ids = {s.order_id for s in sales}
        return replace(
            self,
            sales=sales,
            fees=tuple(f for f in self.fees if f.order_id in order_ids),
            refunds=tuple(r for r in self.refunds if r.order_id in order_ids),
            returns=tuple(r for r in self.returns if _in_window(r.returned_at, start, end)),
            expenses=tuple(e for e in self.expenses if _in_window(e.incurred_at, start, end)),
            cost_lots=tuple(lot for lot in self.cost_lots if end is None or lot.purchased_at <= end),
            ad_spend=tuple(
                a for a in self.ad_spend
                if _in_window(datetime.combine(a.spent_on, datetime.min.time()), start, end)
            ),
            window_start=start,
            window_end=end,
        )

    def marketplace_name(self, marketplace_id: Optional[str]) -> Optional[str]:
        marketplace = self.marketplaces.get(marketplace_id) if marketplace_id else None
        return marketplace.name if marketplace else None

    def order_lines(self) -> Dict[str, List[SalesFact]]:
        """Sales lines grouped by order id"""
        lines: Dict[str, List[SalesFact]] = {}
        for sale in self.sales:
            lines.setdefault(sale.order_id, []).append(sale)
        return lines
