"""
Database Models

Persisted records behind the profit engine:

Sales facts (written by ingestion, read-only here):
- Order / OrderItem: marketplace orders and their lines
- Fee / Refund: order-level charges and refunds
- ProductReturn: physical return events

Cost and expense records (written through the API):
- CostLot: inbound inventory purchases with their unit cost
- Expense: discretionary expenses with optional SKU allocations
- AdSpend: daily advertising spend per campaign

Supporting tables:
- Marketplace, UserAccount, InventoryLevel, InventoryKPI
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from seller_analytics.profit.facts import CostMethod, ExpenseType


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def _uuid() -> str:
    return str(uuid.uuid4())


# =============================================================================
# ENUMERATIONS
# =============================================================================

class UserRole(str, Enum):
    """Role of a user within an account"""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    VIEWER = "VIEWER"


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# =============================================================================
# ACCOUNTS
# =============================================================================

class Marketplace(Base):
    """Sales channel, e.g. Amazon UK"""
    __tablename__ = "marketplaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(10))
    currency: Mapped[Optional[str]] = mapped_column(String(3))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class UserAccount(Base):
    """
    Membership of a user in a seller account.

    Access to an account's reports requires an active membership.
    """
    __tablename__ = "user_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), default=UserRole.STAFF)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "account_id", name="uq_user_accounts_user_account"),
        Index("ix_user_accounts_account", "account_id"),
    )


# =============================================================================
# SALES FACTS
# =============================================================================

class Order(Base):
    """Marketplace order header"""
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    marketplace_id: Mapped[Optional[str]] = mapped_column(ForeignKey("marketplaces.id"))
    external_order_id: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[OrderStatus] = mapped_column(SQLEnum(OrderStatus), default=OrderStatus.SHIPPED)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    ordered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    items: Mapped[List["OrderItem"]] = relationship(back_populates="order")
    fees: Mapped[List["Fee"]] = relationship(back_populates="order")
    refunds: Mapped[List["Refund"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_orders_account_date", "account_id", "ordered_at"),
        Index("ix_orders_marketplace", "marketplace_id"),
    )


class OrderItem(Base):
    """Order line"""
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_sku", "sku"),
    )


class Fee(Base):
    """Marketplace fee charged on an order"""
    __tablename__ = "fees"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    fee_type: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    posted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="fees")

    __table_args__ = (
        Index("ix_fees_order", "order_id"),
    )


class Refund(Base):
    """Money returned to the buyer of an order"""
    __tablename__ = "refunds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    reason_code: Mapped[Optional[str]] = mapped_column(String(100))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    refunded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="refunds")

    __table_args__ = (
        Index("ix_refunds_order", "order_id"),
    )


class ProductReturn(Base):
    """Physical return of sold units"""
    __tablename__ = "product_returns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), nullable=False)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    marketplace_id: Mapped[Optional[str]] = mapped_column(ForeignKey("marketplaces.id"))
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity_returned: Mapped[int] = mapped_column(Integer, nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    is_sellable: Mapped[bool] = mapped_column(Boolean, default=True)
    reason_code: Mapped[Optional[str]] = mapped_column(String(100))
    returned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_product_returns_account_date", "account_id", "returned_at"),
    )


# =============================================================================
# COSTS
# =============================================================================

class CostLot(Base):
    """
    Inbound inventory purchase.

    total_cost is stored as quantity * unit_cost + shipment_cost and kept in
    step on every edit.
    """
    __tablename__ = "cost_lots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    marketplace_id: Mapped[Optional[str]] = mapped_column(ForeignKey("marketplaces.id"))
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    batch_id: Mapped[Optional[str]] = mapped_column(String(50))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    shipment_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    total_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    cost_method: Mapped[CostMethod] = mapped_column(
        SQLEnum(CostMethod), default=CostMethod.WEIGHTED_AVERAGE
    )
    purchased_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_cost_lots_account_sku_date", "account_id", "sku", "purchased_at"),
    )


class Expense(Base):
    """
    Discretionary expense.

    allocated_products holds [{"sku": ..., "percentage": ...}]; percentages
    need not add up to 100.
    """
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    marketplace_id: Mapped[Optional[str]] = mapped_column(ForeignKey("marketplaces.id"))
    type: Mapped[ExpenseType] = mapped_column(SQLEnum(ExpenseType), default=ExpenseType.ONE_TIME)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    description: Mapped[Optional[str]] = mapped_column(Text)
    allocated_products: Mapped[Optional[list]] = mapped_column(JSON)
    incurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_expenses_account_date", "account_id", "incurred_at"),
    )


class AdSpend(Base):
    """Daily spend of one advertising campaign"""
    __tablename__ = "ad_spend"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    marketplace_id: Mapped[Optional[str]] = mapped_column(ForeignKey("marketplaces.id"))
    campaign_id: Mapped[str] = mapped_column(String(50), nullable=False)
    campaign_name: Mapped[str] = mapped_column(String(200), nullable=False)
    spend: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    attributed_sales: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    spent_on: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("ix_ad_spend_account_date", "account_id", "spent_on"),
    )


# =============================================================================
# INVENTORY
# =============================================================================

class InventoryLevel(Base):
    """Current stock on hand per SKU"""
    __tablename__ = "inventory_levels"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    marketplace_id: Mapped[Optional[str]] = mapped_column(ForeignKey("marketplaces.id"))
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity_available: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_inventory_levels_account_sku", "account_id", "sku"),
    )


class InventoryKPI(Base):
    """Derived stock coverage per SKU, refreshed by recalculation"""
    __tablename__ = "inventory_kpis"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    stock_on_hand: Mapped[int] = mapped_column(Integer, default=0)
    units_sold: Mapped[int] = mapped_column(Integer, default=0)
    daily_velocity: Mapped[float] = mapped_column(Float, default=0.0)
    days_of_cover: Mapped[Optional[float]] = mapped_column(Float)
    calculated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "sku", name="uq_inventory_kpis_account_sku"),
    )
