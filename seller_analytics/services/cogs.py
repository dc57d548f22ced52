"""
COGS Service

Cost lot records: creation, privileged edits, per-SKU rollups, batch
details and the historical cost view.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog

from seller_analytics.database.models import CostLot as CostLotModel
from seller_analytics.profit.cost_lots import CostLotLedger
from seller_analytics.profit.errors import AccessDeniedError
from seller_analytics.profit.facts import CostMethod
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.profit.metrics import round_money
from seller_analytics.services.base import ReportService

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = ("quantity", "unit_cost", "shipment_cost", "cost_method", "purchased_at", "batch_id", "notes")


def serialize_lot(lot: CostLotModel) -> Dict[str, Any]:
    return {
        "id": lot.id,
        "sku": lot.sku,
        "account_id": lot.account_id,
        "marketplace_id": lot.marketplace_id,
        "batch_id": lot.batch_id,
        "quantity": lot.quantity,
        "unit_cost": float(lot.unit_cost),
        "shipment_cost": float(lot.shipment_cost) if lot.shipment_cost is not None else None,
        "total_cost": float(lot.total_cost),
        "cost_method": CostMethod(lot.cost_method).value if lot.cost_method else None,
        "purchased_at": lot.purchased_at.isoformat(),
        "notes": lot.notes,
    }


def _average(total_cost: float, quantity: int) -> float:
    return round(total_cost / quantity, 4) if quantity > 0 else 0.0


def rollup_lots(lots: Iterable[CostLotModel]) -> Dict[str, Any]:
    """Quantity, total cost and average unit cost of a set of lots"""
    quantity = 0
    total_cost = 0.0
    for lot in lots:
        quantity += lot.quantity
        total_cost += float(lot.total_cost)
    return {
        "total_quantity": quantity,
        "total_cost": round_money(total_cost),
        "average_unit_cost": _average(total_cost, quantity),
    }


class CogsService(ReportService):
    """
    Example:
        service = CogsService(session)
        lot = await service.create(user_id, {"account_id": ..., "sku": ..., ...})
    """

    async def create(self, user_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
        await self.authorize(user_id, data["account_id"])
        values = dict(data)
        values.setdefault("cost_method", CostMethod.WEIGHTED_AVERAGE)
        lot = await self.repository.create_cost_lot(values)
        await self.invalidate_account(lot.account_id)
        return serialize_lot(lot)

    async def update(self, user_id: Optional[str], lot_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Edit quantity or cost of a lot; total cost is recomputed.

        Raises:
            NotFoundError: Unknown lot
            AccessDeniedError: Caller is not an admin or manager of the account
        """
        lot = await self.repository.get_cost_lot(lot_id)
        membership = await self.authorize(user_id, lot.account_id)
        if not self.repository.is_privileged(membership):
            raise AccessDeniedError("Only admins and managers can edit COGS")

        applied = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        lot = await self.repository.update_cost_lot(lot, applied)
        await self.invalidate_account(lot.account_id)
        return serialize_lot(lot)

    async def by_sku(self, user_id: Optional[str], account_id: str, sku: str) -> Dict[str, Any]:
        """All lots of a SKU, newest first, with a per-marketplace rollup"""
        await self.authorize(user_id, account_id)
        lots = list(await self.repository.list_cost_lot_rows(account_id, sku=sku))
        marketplaces = await self.repository.load_marketplaces()

        groups: Dict[Optional[str], List[CostLotModel]] = {}
        for lot in lots:
            groups.setdefault(lot.marketplace_id, []).append(lot)

        by_marketplace = []
        for marketplace_id, group in groups.items():
            marketplace = marketplaces.get(marketplace_id) if marketplace_id else None
            by_marketplace.append({
                "marketplace_id": marketplace_id,
                "marketplace_name": marketplace.name if marketplace else None,
                **rollup_lots(group),
            })

        return {
            "sku": sku,
            "account_id": account_id,
            **rollup_lots(lots),
            "entries": [serialize_lot(lot) for lot in reversed(lots)],
            "by_marketplace": by_marketplace,
        }

    async def batch_details(self, user_id: Optional[str], lot_id: str) -> Dict[str, Any]:
        """
        One lot with its full cost and the units drawn from it so far.

        Lifetime sales of the SKU are consumed oldest lot first.
        """
        lot = await self.repository.get_cost_lot(lot_id)
        await self.authorize(user_id, lot.account_id)

        now = datetime.now()
        lots = await self.repository.load_cost_lots(lot.account_id, sku=lot.sku, as_of=None)
        sold = await self.repository.units_sold_by_sku(lot.account_id, [lot.sku], end=now)
        consumption = CostLotLedger(lots).consume(lot.sku, lot.account_id, sold.get(lot.sku, 0))
        used = sum(piece.quantity for piece in consumption.slices if piece.lot_id == lot.id)

        details = serialize_lot(lot)
        details.update({
            "used_quantity": used,
            "remaining_quantity": lot.quantity - used,
        })
        return details

    async def historical(self, user_id: Optional[str], filters: ReportFilters) -> Dict[str, Any]:
        """Lots purchased in the window with a cost breakdown by method"""
        await self.authorize(user_id, filters.account_id)
        start, end = filters.window()
        lots = list(
            await self.repository.list_cost_lot_rows(
                filters.account_id, filters.sku, filters.marketplace_id, start, end
            )
        )

        method_breakdown = {method.value: 0.0 for method in CostMethod}
        for lot in lots:
            method = CostMethod(lot.cost_method or CostMethod.WEIGHTED_AVERAGE)
            method_breakdown[method.value] += float(lot.total_cost)

        return {
            "sku": filters.sku,
            "account_id": filters.account_id,
            "marketplace_id": filters.marketplace_id,
            "start_date": filters.start_date.isoformat() if filters.start_date else None,
            "end_date": filters.end_date.isoformat() if filters.end_date else None,
            "data": [
                {
                    "date": lot.purchased_at.date().isoformat(),
                    "quantity": lot.quantity,
                    "unit_cost": float(lot.unit_cost),
                    "total_cost": float(lot.total_cost),
                    "cost_method": CostMethod(lot.cost_method).value if lot.cost_method else None,
                    "batch_id": lot.batch_id,
                }
                for lot in lots
            ],
            "summary": {
                **rollup_lots(lots),
                "method_breakdown": {k: round_money(v) for k, v in method_breakdown.items()},
            },
        }

    async def resolve(
        self,
        user_id: Optional[str],
        account_id: str,
        sku: str,
        quantity: int,
        as_of: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """FIFO cost of a quantity of one SKU from its lot history"""
        await self.authorize(user_id, account_id)
        lots = await self.repository.load_cost_lots(account_id, sku=sku, as_of=as_of)
        consumption = CostLotLedger(lots).consume(sku, account_id, quantity, as_of)
        return {
            "sku": sku,
            "quantity": quantity,
            "cogs": round_money(consumption.cost),
            "costed_units": consumption.consumed,
            "uncosted_units": consumption.uncosted,
            "lots": [
                {"lot_id": s.lot_id, "quantity": s.quantity, "unit_cost": s.unit_cost, "cost": round_money(s.cost)}
                for s in consumption.slices
            ],
        }
