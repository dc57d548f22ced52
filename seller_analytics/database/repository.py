"""
Fact Repository

Reads persisted records into engine facts and writes cost, expense and KPI
rows. One repository per session; queries run one after another on it.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seller_analytics.database.models import (
    AdSpend,
    CostLot as CostLotModel,
    Expense,
    Fee,
    InventoryKPI,
    InventoryLevel,
    Marketplace as MarketplaceModel,
    Order,
    OrderItem,
    ProductReturn,
    Refund,
    UserAccount,
    UserRole,
)
from seller_analytics.profit.cost_lots import lot_total_cost
from seller_analytics.profit.errors import AccessDeniedError, NotFoundError
from seller_analytics.profit.facts import (
    AdSpendFact,
    AllocatedProduct,
    CostLot,
    CostMethod,
    ExpenseFact,
    ExpenseType,
    FactSnapshot,
    FeeFact,
    Marketplace,
    RefundFact,
    ReturnFact,
    SalesFact,
)
from seller_analytics.profit.filters import ReportFilters

logger = structlog.get_logger(__name__)

PRIVILEGED_ROLES = {UserRole.ADMIN, UserRole.MANAGER}


def _money(value: Any) -> float:
    return float(value) if value is not None else 0.0


def to_cost_lot(row: CostLotModel) -> CostLot:
    return CostLot(
        id=row.id,
        sku=row.sku,
        account_id=row.account_id,
        quantity=row.quantity,
        unit_cost=_money(row.unit_cost),
        purchased_at=row.purchased_at,
        shipment_cost=_money(row.shipment_cost) if row.shipment_cost is not None else None,
        cost_method=row.cost_method or CostMethod.WEIGHTED_AVERAGE,
        marketplace_id=row.marketplace_id,
        batch_id=row.batch_id,
    )


def to_expense(row: Expense) -> ExpenseFact:
    allocations = tuple(
        AllocatedProduct(sku=str(entry["sku"]), percentage=float(entry["percentage"]))
        for entry in (row.allocated_products or [])
    )
    return ExpenseFact(
        id=row.id,
        account_id=row.account_id,
        category=row.category,
        amount=_money(row.amount),
        incurred_at=row.incurred_at,
        marketplace_id=row.marketplace_id,
        allocated_products=allocations,
        type=row.type or ExpenseType.ONE_TIME,
    )


class FactRepository:
    """
    Data access for the profit engine.

    Example:
        repo = FactRepository(session)
        await repo.verify_account_access(user_id, account_id)
        snapshot = await repo.load_snapshot(filters)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def verify_account_access(self, user_id: Optional[str], account_id: str) -> UserAccount:
        """
        Raises:
            AccessDeniedError: No active membership of the user in the account
        """
        if not user_id:
            raise AccessDeniedError("Access denied to this account")

        result = await self.session.execute(
            select(UserAccount).where(
                UserAccount.user_id == user_id,
                UserAccount.account_id == account_id,
                UserAccount.is_active.is_(True),
            )
        )
        membership = result.scalar_one_or_none()
        if membership is None:
            logger.warning("Account access denied", user_id=user_id, account_id=account_id)
            raise AccessDeniedError("Access denied to this account")
        return membership

    @staticmethod
    def is_privileged(membership: UserAccount) -> bool:
        return membership.role in PRIVILEGED_ROLES

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def load_snapshot(self, filters: ReportFilters) -> FactSnapshot:
        """
        Read every fact the engine needs for a filter window.

        Sales are read for all SKUs so expense shares see the full revenue
        mix; the SKU filter is applied by the aggregator. Cost lots are read
        up to the window end with no lower bound.
        """
        start, end = filters.window()

        sales = await self._load_sales(filters.account_id, filters.marketplace_id, start, end)
        fees = await self._load_fees(filters.account_id, filters.marketplace_id, start, end)
        refunds = await self._load_refunds(filters.account_id, filters.marketplace_id, start, end)
        returns = await self.load_returns(filters.account_id, filters.marketplace_id, start, end)
        expenses = await self.load_expenses(filters.account_id, filters.marketplace_id, start, end)
        cost_lots = await self.load_cost_lots(filters.account_id, as_of=end)
        ad_spend = await self._load_ad_spend(
            filters.account_id, filters.marketplace_id, filters.start_date, filters.end_date
        )
        marketplaces = await self.load_marketplaces()

        logger.debug(
            "Fact snapshot loaded",
            account_id=filters.account_id,
            sales=len(sales),
            fees=len(fees),
            refunds=len(refunds),
            returns=len(returns),
            expenses=len(expenses),
            cost_lots=len(cost_lots),
        )

        return FactSnapshot(
            account_id=filters.account_id,
            sales=tuple(sales),
            fees=tuple(fees),
            refunds=tuple(refunds),
            returns=tuple(returns),
            expenses=tuple(expenses),
            cost_lots=tuple(cost_lots),
            ad_spend=tuple(ad_spend),
            marketplaces=marketplaces,
            window_start=start,
            window_end=end,
        )

    def _order_conditions(
        self,
        account_id: str,
        marketplace_id: Optional[str],
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[Any]:
        conditions = [Order.account_id == account_id]
        if marketplace_id:
            conditions.append(Order.marketplace_id == marketplace_id)
        if start is not None:
            conditions.append(Order.ordered_at >= start)
        if end is not None:
            conditions.append(Order.ordered_at <= end)
        return conditions

    async def _load_sales(self, account_id, marketplace_id, start, end) -> List[SalesFact]:
        query = (
            select(OrderItem, Order)
            .join(Order, OrderItem.order_id == Order.id)
            .where(*self._order_conditions(account_id, marketplace_id, start, end))
            .order_by(Order.ordered_at, OrderItem.id)
        )
        result = await self.session.execute(query)
        return [
            SalesFact(
                line_id=item.id,
                order_id=order.id,
                sku=item.sku,
                marketplace_id=order.marketplace_id,
                account_id=order.account_id,
                quantity=item.quantity,
                unit_price=_money(item.unit_price),
                line_revenue=_money(item.total_price),
                ordered_at=order.ordered_at,
            )
            for item, order in result.all()
        ]

    async def _load_fees(self, account_id, marketplace_id, start, end) -> List[FeeFact]:
        query = (
            select(Fee)
            .join(Order, Fee.order_id == Order.id)
            .where(*self._order_conditions(account_id, marketplace_id, start, end))
        )
        result = await self.session.execute(query)
        return [
            FeeFact(order_id=fee.order_id, fee_type=fee.fee_type, amount=_money(fee.amount), posted_at=fee.posted_at)
            for fee in result.scalars().all()
        ]

    async def _load_refunds(self, account_id, marketplace_id, start, end) -> List[RefundFact]:
        query = (
            select(Refund)
            .join(Order, Refund.order_id == Order.id)
            .where(*self._order_conditions(account_id, marketplace_id, start, end))
        )
        result = await self.session.execute(query)
        return [
            RefundFact(
                order_id=refund.order_id,
                reason_code=refund.reason_code,
                amount=_money(refund.amount),
                refunded_at=refund.refunded_at,
            )
            for refund in result.scalars().all()
        ]

    async def load_returns(
        self,
        account_id: str,
        marketplace_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        sku: Optional[str] = None,
    ) -> List[ReturnFact]:
        query = select(ProductReturn).where(ProductReturn.account_id == account_id)
        if marketplace_id:
            query = query.where(ProductReturn.marketplace_id == marketplace_id)
        if sku:
            query = query.where(ProductReturn.sku == sku)
        if start is not None:
            query = query.where(ProductReturn.returned_at >= start)
        if end is not None:
            query = query.where(ProductReturn.returned_at <= end)

        result = await self.session.execute(query.order_by(ProductReturn.returned_at))
        return [
            ReturnFact(
                order_id=row.order_id,
                sku=row.sku,
                quantity_returned=row.quantity_returned,
                refund_amount=_money(row.refund_amount),
                fee_amount=_money(row.fee_amount),
                is_sellable=bool(row.is_sellable),
                reason_code=row.reason_code,
                returned_at=row.returned_at,
                marketplace_id=row.marketplace_id,
            )
            for row in result.scalars().all()
        ]

    async def load_expenses(
        self,
        account_id: str,
        marketplace_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ExpenseFact]:
        query = select(Expense).where(Expense.account_id == account_id)
        if marketplace_id:
            query = query.where(Expense.marketplace_id == marketplace_id)
        if start is not None:
            query = query.where(Expense.incurred_at >= start)
        if end is not None:
            query = query.where(Expense.incurred_at <= end)

        result = await self.session.execute(query.order_by(Expense.incurred_at, Expense.id))
        return [to_expense(row) for row in result.scalars().all()]

    async def load_cost_lots(
        self,
        account_id: str,
        sku: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> List[CostLot]:
        result = await self.session.execute(self._cost_lot_query(account_id, sku=sku, end=as_of))
        return [to_cost_lot(row) for row in result.scalars().all()]

    async def _load_ad_spend(
        self,
        account_id: str,
        marketplace_id: Optional[str],
        start: Optional[date],
        end: Optional[date],
    ) -> List[AdSpendFact]:
        query = select(AdSpend).where(AdSpend.account_id == account_id)
        if marketplace_id:
            query = query.where(AdSpend.marketplace_id == marketplace_id)
        if start is not None:
            query = query.where(AdSpend.spent_on >= start)
        if end is not None:
            query = query.where(AdSpend.spent_on <= end)

        result = await self.session.execute(query)
        return [
            AdSpendFact(
                campaign_id=row.campaign_id,
                campaign_name=row.campaign_name,
                spend=_money(row.spend),
                attributed_sales=_money(row.attributed_sales),
                spent_on=row.spent_on,
                marketplace_id=row.marketplace_id,
            )
            for row in result.scalars().all()
        ]

    async def load_marketplaces(self) -> Dict[str, Marketplace]:
        result = await self.session.execute(select(MarketplaceModel))
        return {
            row.id: Marketplace(id=row.id, name=row.name, code=row.code, region=row.region)
            for row in result.scalars().all()
        }

    # ------------------------------------------------------------------
    # Cost lots
    # ------------------------------------------------------------------

    def _cost_lot_query(
        self,
        account_id: str,
        sku: Optional[str] = None,
        marketplace_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ):
        query = select(CostLotModel).where(CostLotModel.account_id == account_id)
        if sku:
            query = query.where(CostLotModel.sku == sku)
        if marketplace_id:
            query = query.where(CostLotModel.marketplace_id == marketplace_id)
        if start is not None:
            query = query.where(CostLotModel.purchased_at >= start)
        if end is not None:
            query = query.where(CostLotModel.purchased_at <= end)
        return query.order_by(CostLotModel.purchased_at, CostLotModel.id)

    async def list_cost_lot_rows(
        self,
        account_id: str,
        sku: Optional[str] = None,
        marketplace_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sequence[CostLotModel]:
        result = await self.session.execute(
            self._cost_lot_query(account_id, sku, marketplace_id, start, end)
        )
        return result.scalars().all()

    async def get_cost_lot(self, lot_id: str) -> CostLotModel:
        """
        Raises:
            NotFoundError: Unknown cost lot id
        """
        lot = await self.session.get(CostLotModel, lot_id)
        if lot is None:
            raise NotFoundError("COGS record not found")
        return lot

    async def create_cost_lot(self, values: Dict[str, Any]) -> CostLotModel:
        lot = CostLotModel(**values)
        lot.total_cost = self._lot_total(lot)
        self.session.add(lot)
        await self.session.flush()
        logger.info("Cost lot created", lot_id=lot.id, sku=lot.sku, quantity=lot.quantity)
        return lot

    async def update_cost_lot(self, lot: CostLotModel, changes: Dict[str, Any]) -> CostLotModel:
        for key, value in changes.items():
            setattr(lot, key, value)
        lot.total_cost = self._lot_total(lot)
        await self.session.flush()
        logger.info("Cost lot updated", lot_id=lot.id, fields=sorted(changes))
        return lot

    @staticmethod
    def _lot_total(lot: CostLotModel) -> float:
        return round(lot_total_cost(to_cost_lot(lot)), 2)

    async def units_sold_by_sku(
        self,
        account_id: str,
        skus: Iterable[str],
        end: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """Lifetime units sold per SKU up to end"""
        skus = list(skus)
        if not skus:
            return {}
        query = (
            select(OrderItem.sku, OrderItem.quantity)
            .join(Order, OrderItem.order_id == Order.id)
            .where(Order.account_id == account_id, OrderItem.sku.in_(skus))
        )
        if end is not None:
            query = query.where(Order.ordered_at <= end)

        totals: Dict[str, int] = {}
        for sku, quantity in (await self.session.execute(query)).all():
            totals[sku] = totals.get(sku, 0) + quantity
        return totals

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def create_expense(self, values: Dict[str, Any]) -> Expense:
        expense = Expense(**values)
        self.session.add(expense)
        await self.session.flush()
        logger.info("Expense created", expense_id=expense.id, category=expense.category)
        return expense

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def list_inventory_levels(self, account_id: str) -> Sequence[InventoryLevel]:
        result = await self.session.execute(
            select(InventoryLevel).where(InventoryLevel.account_id == account_id)
        )
        return result.scalars().all()

    async def upsert_inventory_kpi(self, account_id: str, sku: str, values: Dict[str, Any]) -> InventoryKPI:
        """Insert or refresh the KPI row of one SKU"""
        result = await self.session.execute(
            select(InventoryKPI).where(InventoryKPI.account_id == account_id, InventoryKPI.sku == sku)
        )
        kpi = result.scalar_one_or_none()
        if kpi is None:
            kpi = InventoryKPI(account_id=account_id, sku=sku, **values)
            self.session.add(kpi)
        else:
            for key, value in values.items():
                setattr(kpi, key, value)
        await self.session.flush()
        return kpi

    async def list_inventory_kpis(self, account_id: str) -> Sequence[InventoryKPI]:
        result = await self.session.execute(
            select(InventoryKPI).where(InventoryKPI.account_id == account_id).order_by(InventoryKPI.sku)
        )
        return result.scalars().all()
