"""
Integration fixtures: a seeded in-memory database and an API client
"""
import pytest
from datetime import date, datetime

from httpx import ASGITransport, AsyncClient

from seller_analytics.database.connection import get_db_dependency
from seller_analytics.database.models import (
    AdSpend,
    CostLot,
    Expense,
    Fee,
    InventoryLevel,
    Marketplace,
    Order,
    OrderItem,
    ProductReturn,
    Refund,
    UserAccount,
    UserRole,
)
from seller_analytics.profit.facts import CostMethod
from seller_analytics.serving.api.main import create_api_app

ACCOUNT_ID = "acc-1"
ADMIN = "user-admin"
STAFF = "user-staff"
OUTSIDER = "user-outsider"


def _order(order_id, ordered_at, marketplace_id, items):
    order = Order(
        id=order_id,
        account_id=ACCOUNT_ID,
        marketplace_id=marketplace_id,
        external_order_id=f"EXT-{order_id}",
        ordered_at=ordered_at,
        total_amount=sum(quantity * price for _, _, quantity, price in items),
    )
    order.items = [
        OrderItem(id=line_id, sku=sku, quantity=quantity, unit_price=price, total_price=quantity * price)
        for line_id, sku, quantity, price in items
    ]
    return order


@pytest.fixture
async def seeded_db(session_factory):
    """Same facts as the sample snapshot, persisted"""
    async with session_factory() as session:
        session.add_all([
            Marketplace(id="mp-us", name="Amazon US", code="ATVPDKIKX0DER", region="US", currency="USD"),
            Marketplace(id="mp-uk", name="Amazon UK", code="A1F83G8C2ARO7P", region="UK", currency="GBP"),
            UserAccount(user_id=ADMIN, account_id=ACCOUNT_ID, role=UserRole.ADMIN),
            UserAccount(user_id=STAFF, account_id=ACCOUNT_ID, role=UserRole.STAFF),
            _order("o-1", datetime(2026, 9, 1, 10), "mp-us", [("l-1", "SKU-A", 2, 15.0), ("l-2", "SKU-B", 1, 70.0)]),
            _order("o-2", datetime(2026, 9, 2, 9, 30), "mp-uk", [("l-3", "SKU-A", 3, 10.0)]),
            _order("o-3", datetime(2026, 9, 3, 23, 59, 59), "mp-us", [("l-4", "SKU-B", 1, 50.0)]),
            Fee(order_id="o-1", fee_type="FBA Fulfillment Fee", amount=10.0, posted_at=datetime(2026, 9, 1, 12)),
            Fee(order_id="o-2", fee_type="Referral Fee", amount=4.5, posted_at=datetime(2026, 9, 2, 12)),
            Refund(order_id="o-1", reason_code="CUSTOMER_RETURN", amount=20.0, refunded_at=datetime(2026, 9, 5)),
            ProductReturn(
                order_id="o-1",
                account_id=ACCOUNT_ID,
                marketplace_id="mp-us",
                sku="SKU-A",
                quantity_returned=1,
                refund_amount=15.0,
                fee_amount=2.0,
                is_sellable=True,
                reason_code="DEFECTIVE",
                returned_at=datetime(2026, 9, 3, 8),
            ),
            Expense(
                id="e-1",
                account_id=ACCOUNT_ID,
                category="Software",
                amount=100.0,
                allocated_products=[{"sku": "SKU-A", "percentage": 40}],
                incurred_at=datetime(2026, 9, 2),
            ),
            CostLot(id="lot-1", account_id=ACCOUNT_ID, sku="SKU-A", quantity=10, unit_cost=2.0,
                    total_cost=20.0, cost_method=CostMethod.BATCH, purchased_at=datetime(2026, 8, 1)),
            CostLot(id="lot-2", account_id=ACCOUNT_ID, sku="SKU-A", quantity=5, unit_cost=3.0,
                    total_cost=15.0, purchased_at=datetime(2026, 8, 15)),
            CostLot(id="lot-3", account_id=ACCOUNT_ID, sku="SKU-B", quantity=10, unit_cost=20.0,
                    total_cost=200.0, purchased_at=datetime(2026, 8, 1), marketplace_id="mp-us"),
            AdSpend(account_id=ACCOUNT_ID, campaign_id="c-1", campaign_name="Sponsored Products - Autumn",
                    spend=12.0, attributed_sales=60.0, spent_on=date(2026, 9, 1)),
            InventoryLevel(account_id=ACCOUNT_ID, sku="SKU-A", quantity_available=45),
            InventoryLevel(account_id=ACCOUNT_ID, sku="SKU-C", quantity_available=8),
        ])
        await session.commit()
    return session_factory


@pytest.fixture
async def api_client(seeded_db):
    """API client bound to the seeded database, without Redis"""
    app = create_api_app()

    async def override_db():
        async with seeded_db() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_dependency] = override_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
