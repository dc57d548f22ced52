"""
Chart API Endpoints
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from seller_analytics.profit.filters import ReportFilters
from seller_analytics.serving.api.dependencies import get_charts_service, get_user_id, windowed_filters
from seller_analytics.services import ChartsService

router = APIRouter()


@router.get("/dashboard")
async def dashboard_chart(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ChartsService = Depends(get_charts_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.dashboard(user_id, filters)}


@router.get("/comparison")
async def comparison_chart(
    filters: ReportFilters = Depends(windowed_filters),
    metric: str = Query("sales"),
    user_id: Optional[str] = Depends(get_user_id),
    service: ChartsService = Depends(get_charts_service),
) -> Dict[str, Any]:
    """Current window against the preceding window of the same width"""
    return {"success": True, "data": await service.comparison(user_id, filters, metric)}


@router.get("/country-map")
async def country_map(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ChartsService = Depends(get_charts_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.country_map(user_id, filters)}


@router.get("/{metric}")
async def metric_chart(
    metric: str,
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ChartsService = Depends(get_charts_service),
) -> Dict[str, Any]:
    """Labelled series for sales, profit, advertising or returns"""
    return {"success": True, "data": await service.chart(user_id, filters, metric)}
