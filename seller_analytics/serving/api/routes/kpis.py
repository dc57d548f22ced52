"""
KPI API Endpoints
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from seller_analytics.profit.errors import ValidationError
from seller_analytics.profit.filters import ReportFilters
from seller_analytics.serving.api.dependencies import get_kpi_service, get_user_id, windowed_filters
from seller_analytics.services import KpiService

router = APIRouter()


@router.get("/units-sold")
async def units_sold(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: KpiService = Depends(get_kpi_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.units_sold(user_id, filters)}


@router.get("/returns-cost")
async def returns_cost(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: KpiService = Depends(get_kpi_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.returns_cost(user_id, filters)}


@router.get("/advertising")
async def advertising(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: KpiService = Depends(get_kpi_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.advertising(user_id, filters)}


@router.get("/fba-fees")
async def fba_fees(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: KpiService = Depends(get_kpi_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.fba_fees(user_id, filters)}


@router.get("/payout-estimate")
async def payout_estimate(
    filters: ReportFilters = Depends(windowed_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: KpiService = Depends(get_kpi_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.payout_estimate(user_id, filters)}


@router.post("/inventory/recalculate")
async def recalculate_inventory(
    account_id: Optional[str] = Query(None, alias="accountId"),
    user_id: Optional[str] = Depends(get_user_id),
    service: KpiService = Depends(get_kpi_service),
) -> Dict[str, Any]:
    """Refresh days of cover for every stocked SKU"""
    if not account_id:
        raise ValidationError("accountId is required")
    results = await service.recalculate_inventory(user_id, account_id)
    return {"success": True, "data": {"updated": len(results), "items": results}}
