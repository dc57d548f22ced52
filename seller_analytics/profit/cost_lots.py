"""
Cost Lot Ledger

Resolves cost of goods sold from inbound cost lots.

Aggregate attribution consumes lots oldest-first (FIFO by purchase time).
Consumption is a reduction over the sorted lot list computed per request;
no lot ever stores a "remaining" quantity, so overlapping windows can be
costed concurrently from the same lots.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from .facts import CostLot, SalesFact

logger = structlog.get_logger(__name__)


class CogsMethod(str, Enum):
    """How sold units are costed"""
    FIFO = "fifo"
    WEIGHTED_AVERAGE = "weighted_average"


def lot_total_cost(lot: CostLot) -> float:
    """Full cost of one lot, shipment surcharge included"""
    return lot.quantity * lot.unit_cost + (lot.shipment_cost or 0.0)


def weighted_average_unit_cost(lots: Iterable[CostLot]) -> float:
    """sum(quantity * unit_cost) / sum(quantity); 0 when there is no quantity"""
    total_cost = 0.0
    total_quantity = 0
    for lot in lots:
        total_cost += lot.quantity * lot.unit_cost
        total_quantity += lot.quantity
    return total_cost / total_quantity if total_quantity > 0 else 0.0


@dataclass
class LotSlice:
    """Units drawn from a single lot"""
    lot_id: str
    quantity: int
    unit_cost: float

    @property
    def cost(self) -> float:
        return self.quantity * self.unit_cost


@dataclass
class CostConsumption:
    """Result of costing a quantity of one SKU"""
    sku: str
    requested: int
    cost: float = 0.0
    consumed: int = 0
    slices: List[LotSlice] = field(default_factory=list)

    @property
    def uncosted(self) -> int:
        """Units sold beyond the available lot quantity"""
        return max(self.requested - self.consumed, 0)


def _fifo_reduce(lots: Sequence[CostLot], demands: Sequence[int]) -> List[Tuple[float, int, List[LotSlice]]]:
    """
    Draw each demand, in order, from lots oldest-first.

    Returns (cost, consumed units, slices) per demand.
    """
    results = []
    lot_index = 0
    drawn_from_current = 0

    for demand in demands:
        remaining = max(demand, 0)
        cost = 0.0
        consumed = 0
        slices: List[LotSlice] = []

        while remaining > 0 and lot_index < len(lots):
            lot = lots[lot_index]
            available = lot.quantity - drawn_from_current
            if available <= 0:
                lot_index += 1
                drawn_from_current = 0
                continue

            used = min(remaining, available)
            cost += used * lot.unit_cost
            consumed += used
            remaining -= used
            drawn_from_current += used
            slices.append(LotSlice(lot_id=lot.id, quantity=used, unit_cost=lot.unit_cost))

        results.append((cost, consumed, slices))

    return results


class CostLotLedger:
    """
    Ordered cost lots per (account, SKU).

    Example:
        ledger = CostLotLedger(snapshot.cost_lots)
        cogs = ledger.resolve_cogs("SKU-1", "acc-1", 12)
    """

    def __init__(self, lots: Iterable[CostLot]):
        self._lots: Dict[Tuple[str, str], List[CostLot]] = defaultdict(list)
        for lot in lots:
            self._lots[(lot.account_id, lot.sku)].append(lot)
        for entries in self._lots.values():
            entries.sort(key=lambda lot: (lot.purchased_at, lot.id))

    def lots_for(self, sku: str, account_id: str, as_of: Optional[datetime] = None) -> List[CostLot]:
        """Lots of a SKU purchased at or before as_of, oldest first"""
        lots = self._lots.get((account_id, sku), [])
        if as_of is None:
            return list(lots)
        return [lot for lot in lots if lot.purchased_at <= as_of]

    def all_lots(self) -> List[CostLot]:
        return [lot for entries in self._lots.values() for lot in entries]

    def consume(
        self,
        sku: str,
        account_id: str,
        quantity_sold: int,
        as_of: Optional[datetime] = None,
    ) -> CostConsumption:
        """FIFO-cost a quantity of one SKU"""
        lots = self.lots_for(sku, account_id, as_of)
        cost, consumed, slices = _fifo_reduce(lots, [quantity_sold])[0]
        return CostConsumption(
            sku=sku,
            requested=quantity_sold,
            cost=cost,
            consumed=consumed,
            slices=slices,
        )

    def resolve_cogs(
        self,
        sku: str,
        account_id: str,
        quantity_sold: int,
        as_of: Optional[datetime] = None,
    ) -> float:
        """
        Cost of goods sold for a SKU by FIFO consumption.

        Shipment surcharges are not prorated into partial consumption. With no
        lots the cost is 0; a shortfall is left uncosted.
        """
        return self.consume(sku, account_id, quantity_sold, as_of).cost

    def weighted_average_cost(self, sku: Optional[str] = None, account_id: Optional[str] = None) -> float:
        """Weighted average unit cost over all lots in scope"""
        lots = [
            lot for lot in self.all_lots()
            if (sku is None or lot.sku == sku) and (account_id is None or lot.account_id == account_id)
        ]
        return weighted_average_unit_cost(lots)

    def total_cost(self, sku: Optional[str] = None) -> float:
        """Sum of full lot costs, shipment included"""
        return sum(lot_total_cost(lot) for lot in self.all_lots() if sku is None or lot.sku == sku)

    def cost_sales_lines(
        self,
        lines: Iterable[SalesFact],
        as_of: Optional[datetime] = None,
        method: CogsMethod = CogsMethod.FIFO,
    ) -> Dict[str, CostConsumption]:
        """
        Cost every sales line, keyed by line id.

        Lines of a SKU are costed in time order, so the per-line costs of a SKU
        add up to resolve_cogs() for its total quantity.
        """
        by_sku: Dict[Tuple[str, str], List[SalesFact]] = defaultdict(list)
        for line in lines:
            by_sku[(line.account_id, line.sku)].append(line)

        costs: Dict[str, CostConsumption] = {}
        for (account_id, sku), sku_lines in by_sku.items():
            sku_lines.sort(key=lambda line: (line.ordered_at, line.order_id, line.line_id))
            lots = self.lots_for(sku, account_id, as_of)

            if method == CogsMethod.WEIGHTED_AVERAGE:
                unit_cost = weighted_average_unit_cost(lots)
                for line in sku_lines:
                    costed = line.quantity if lots else 0
                    costs[line.line_id] = CostConsumption(
                        sku=sku,
                        requested=line.quantity,
                        cost=costed * unit_cost,
                        consumed=costed,
                    )
                continue

            reduced = _fifo_reduce(lots, [line.quantity for line in sku_lines])
            for line, (cost, consumed, slices) in zip(sku_lines, reduced):
                costs[line.line_id] = CostConsumption(
                    sku=sku,
                    requested=line.quantity,
                    cost=cost,
                    consumed=consumed,
                    slices=slices,
                )

            shortfall = sum(line.quantity for line in sku_lines) - sum(c[1] for c in reduced)
            if shortfall > 0:
                logger.warning(
                    "Sold quantity exceeds cost lot history",
                    sku=sku,
                    account_id=account_id,
                    uncosted_units=shortfall,
                )

        return costs
