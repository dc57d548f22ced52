"""
Test Suite Configuration
"""
import pytest
from datetime import date, datetime
from typing import AsyncGenerator

import polars as pl
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from seller_analytics.config import Settings
from seller_analytics.database.models import Base
from seller_analytics.profit.facts import (
    AdSpendFact,
    FactSnapshot,
    FeeFact,
    Marketplace,
    RefundFact,
    ReturnFact,
)
from tests.factories import ACCOUNT_ID, expense, lot, sale


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
async def test_engine():
    """In-memory database, created fresh for every test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def marketplaces():
    return {
        "mp-us": Marketplace(id="mp-us", name="Amazon US", code="ATVPDKIKX0DER", region="US"),
        "mp-uk": Marketplace(id="mp-uk", name="Amazon UK", code="A1F83G8C2ARO7P", region="UK"),
        "mp-xx": Marketplace(id="mp-xx", name="Test Market", code="XX", region=None),
    }


@pytest.fixture
def sample_snapshot(marketplaces) -> FactSnapshot:
    """
    Two SKUs over three days in two marketplaces.

    Order o-1 has both SKUs, so its fee and refund are shared by revenue.
    """
    sales = (
        sale("l-1", "o-1", "SKU-A", 2, 15.0, datetime(2026, 9, 1, 10, 0)),
        sale("l-2", "o-1", "SKU-B", 1, 70.0, datetime(2026, 9, 1, 10, 0)),
        sale("l-3", "o-2", "SKU-A", 3, 10.0, datetime(2026, 9, 2, 9, 30), marketplace_id="mp-uk"),
        sale("l-4", "o-3", "SKU-B", 1, 50.0, datetime(2026, 9, 3, 23, 59, 59)),
    )
    return FactSnapshot(
        account_id=ACCOUNT_ID,
        sales=sales,
        fees=(
            FeeFact(order_id="o-1", fee_type="FBA Fulfillment Fee", amount=10.0, posted_at=datetime(2026, 9, 1, 12)),
            FeeFact(order_id="o-2", fee_type="Referral Fee", amount=4.5, posted_at=datetime(2026, 9, 2, 12)),
        ),
        refunds=(
            RefundFact(order_id="o-1", reason_code="CUSTOMER_RETURN", amount=20.0, refunded_at=datetime(2026, 9, 5)),
        ),
        returns=(
            ReturnFact(
                order_id="o-1",
                sku="SKU-A",
                quantity_returned=1,
                refund_amount=15.0,
                fee_amount=2.0,
                is_sellable=True,
                reason_code="DEFECTIVE",
                returned_at=datetime(2026, 9, 3, 8),
                marketplace_id="mp-us",
            ),
        ),
        expenses=(
            expense("e-1", 100.0, datetime(2026, 9, 2), allocations=[("SKU-A", 40)]),
        ),
        cost_lots=(
            lot("lot-1", "SKU-A", 10, 2.0, datetime(2026, 8, 1)),
            lot("lot-2", "SKU-A", 5, 3.0, datetime(2026, 8, 15)),
            lot("lot-3", "SKU-B", 10, 20.0, datetime(2026, 8, 1)),
        ),
        ad_spend=(
            AdSpendFact(
                campaign_id="c-1",
                campaign_name="Sponsored Products - Autumn",
                spend=12.0,
                attributed_sales=60.0,
                spent_on=date(2026, 9, 1),
            ),
        ),
        marketplaces=marketplaces,
    )


@pytest.fixture
def sample_returns_df() -> pl.DataFrame:
    """Return events as they arrive from the returns report"""
    return pl.DataFrame({
        "order_id": ["o-1", "o-2", "o-3"],
        "sku": ["SKU-A", "SKU-A", "SKU-B"],
        "quantity_returned": [1, 2, 1],
        "refund_amount": [15.0, 20.0, 50.0],
        "fee_amount": [2.0, 3.0, 0.0],
        "is_sellable": [True, False, False],
        "reason_code": ["DEFECTIVE", "DEFECTIVE", "NOT_AS_DESCRIBED"],
        "returned_at": [
            datetime(2026, 9, 1, 8),
            datetime(2026, 9, 1, 9),
            datetime(2026, 9, 2, 10),
        ],
        "marketplace_id": ["mp-us", "mp-uk", "mp-us"],
    })
