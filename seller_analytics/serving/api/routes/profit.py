"""
Profit API Endpoints

Summary, breakdowns, trends, order-line profit and the P&L report.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from seller_analytics.profit.aggregator import Dimension
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.profit.errors import ValidationError
from seller_analytics.serving.api.dependencies import (
    get_profit_service,
    get_user_id,
    report_filters,
    windowed_filters,
)
from seller_analytics.services import ProfitService

router = APIRouter()


@router.get("/summary")
async def profit_summary(
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    """Account-level totals; all-time unless a window is given"""
    return {"success": True, "data": await service.summary(user_id, filters)}


@router.get("/by-product")
async def profit_by_product(
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.breakdown(user_id, filters, Dimension.SKU)}


@router.get("/by-marketplace")
async def profit_by_marketplace(
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.breakdown(user_id, filters, Dimension.MARKETPLACE)}


@router.get("/by-country")
async def profit_by_country(
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.breakdown(user_id, filters, Dimension.COUNTRY)}


@router.get("/trends")
async def profit_trends(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    """Zero-filled period rows over the window"""
    rows: List[Dict[str, Any]] = await service.trends(user_id, filters)
    return {"success": True, "data": rows}


@router.get("/trends/simple")
async def profit_trends_simple(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.simple_trends(user_id, filters)}


@router.get("/products/trends")
async def product_trends(
    filters: ReportFilters = Depends(windowed_filters),
    metric: str = Query("sales"),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    """Top products by the chosen metric with their daily values"""
    return {"success": True, "data": await service.product_trends(user_id, filters, metric, limit)}


@router.get("/order-items")
async def order_items(
    filters: ReportFilters = Depends(report_filters),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.order_items(user_id, filters, limit, offset)}


@router.get("/pl")
async def profit_and_loss(
    account_id: Optional[str] = Query(None, alias="accountId"),
    marketplace_id: Optional[str] = Query(None, alias="marketplaceId"),
    user_id: Optional[str] = Depends(get_user_id),
    service: ProfitService = Depends(get_profit_service),
) -> Dict[str, Any]:
    """Month to date and trailing months, one column per period"""
    if not account_id:
        raise ValidationError("accountId is required")
    return {"success": True, "data": await service.pnl(user_id, account_id, marketplace_id)}
