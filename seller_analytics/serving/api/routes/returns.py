"""
Returns API Endpoints
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from seller_analytics.profit.filters import ReportFilters
from seller_analytics.serving.api.dependencies import get_returns_service, get_user_id, windowed_filters
from seller_analytics.services import ReturnsService

router = APIRouter()


@router.get("/summary")
async def returns_summary(
    filters: ReportFilters = Depends(windowed_filters),
    reason_code: Optional[str] = Query(None, alias="reasonCode"),
    user_id: Optional[str] = Depends(get_user_id),
    service: ReturnsService = Depends(get_returns_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.summary(user_id, filters, reason_code)}
