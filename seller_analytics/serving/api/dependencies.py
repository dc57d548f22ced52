"""
Shared FastAPI dependencies: caller identity, report filters and services.
"""

from typing import Optional

from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from seller_analytics.config import get_settings
from seller_analytics.database.connection import get_db_dependency
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.services import (
    ChartsService,
    CogsService,
    ExpensesService,
    KpiService,
    ProfitService,
    ReturnsService,
)

settings = get_settings()


async def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> Optional[str]:
    """Authenticated caller, set by the gateway in front of the API"""
    return x_user_id


def report_filters(
    account_id: Optional[str] = Query(None, alias="accountId"),
    marketplace_id: Optional[str] = Query(None, alias="marketplaceId"),
    sku: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    period: Optional[str] = Query(None),
) -> ReportFilters:
    """Filters with an open window when no dates are given"""
    return ReportFilters.build(
        account_id,
        marketplace_id=marketplace_id,
        sku=sku,
        start_date=start_date,
        end_date=end_date,
        period=period,
    )


def windowed_filters(
    account_id: Optional[str] = Query(None, alias="accountId"),
    marketplace_id: Optional[str] = Query(None, alias="marketplaceId"),
    sku: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    period: Optional[str] = Query(None),
) -> ReportFilters:
    """Filters defaulting to the trailing reporting window"""
    return ReportFilters.build(
        account_id,
        marketplace_id=marketplace_id,
        sku=sku,
        start_date=start_date,
        end_date=end_date,
        period=period,
        default_window_days=settings.reporting.default_window_days,
    )


def get_profit_service(db: AsyncSession = Depends(get_db_dependency)) -> ProfitService:
    return ProfitService(db)


def get_charts_service(db: AsyncSession = Depends(get_db_dependency)) -> ChartsService:
    return ChartsService(db)


def get_cogs_service(db: AsyncSession = Depends(get_db_dependency)) -> CogsService:
    return CogsService(db)


def get_expenses_service(db: AsyncSession = Depends(get_db_dependency)) -> ExpensesService:
    return ExpensesService(db)


def get_returns_service(db: AsyncSession = Depends(get_db_dependency)) -> ReturnsService:
    return ReturnsService(db)


def get_kpi_service(db: AsyncSession = Depends(get_db_dependency)) -> KpiService:
    return KpiService(db)
