"""
COGS API Endpoints

Cost lot entry and editing, per-SKU history and FIFO cost resolution.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator

from seller_analytics.profit.errors import ValidationError
from seller_analytics.profit.facts import CostMethod
from seller_analytics.profit.filters import ReportFilters, as_naive_utc, end_of_day, parse_date
from seller_analytics.serving.api.dependencies import get_cogs_service, get_user_id, report_filters
from seller_analytics.services import CogsService

router = APIRouter()


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CostLotCreate(BaseModel):
    """New purchase lot"""
    account_id: str = Field(..., alias="accountId")
    marketplace_id: Optional[str] = Field(None, alias="marketplaceId")
    sku: str = Field(..., min_length=1)
    batch_id: Optional[str] = Field(None, alias="batchId")
    quantity: int = Field(..., gt=0)
    unit_cost: float = Field(..., ge=0, alias="unitCost")
    shipment_cost: Optional[float] = Field(None, ge=0, alias="shipmentCost")
    cost_method: CostMethod = Field(CostMethod.WEIGHTED_AVERAGE, alias="costMethod")
    purchased_at: datetime = Field(..., alias="purchasedAt")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}

    @field_validator("purchased_at")
    @classmethod
    def naive_purchased_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store purchase times as naive UTC"""
        return as_naive_utc(v)


class CostLotUpdate(BaseModel):
    """Partial edit of a lot; omitted fields are left alone"""
    quantity: Optional[int] = Field(None, gt=0)
    unit_cost: Optional[float] = Field(None, ge=0, alias="unitCost")
    shipment_cost: Optional[float] = Field(None, ge=0, alias="shipmentCost")
    cost_method: Optional[CostMethod] = Field(None, alias="costMethod")
    purchased_at: Optional[datetime] = Field(None, alias="purchasedAt")
    batch_id: Optional[str] = Field(None, alias="batchId")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}

    @field_validator("purchased_at")
    @classmethod
    def naive_purchased_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store purchase times as naive UTC"""
        return as_naive_utc(v)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", status_code=201)
async def create_cost_lot(
    payload: CostLotCreate,
    user_id: Optional[str] = Depends(get_user_id),
    service: CogsService = Depends(get_cogs_service),
) -> Dict[str, Any]:
    data = await service.create(user_id, payload.model_dump())
    return {"success": True, "data": data}


@router.patch("/{lot_id}")
async def update_cost_lot(
    lot_id: str,
    payload: CostLotUpdate,
    user_id: Optional[str] = Depends(get_user_id),
    service: CogsService = Depends(get_cogs_service),
) -> Dict[str, Any]:
    """Admins and managers only"""
    changes = payload.model_dump(exclude_unset=True)
    return {"success": True, "data": await service.update(user_id, lot_id, changes)}


@router.get("/sku/{sku}")
async def cost_lots_by_sku(
    sku: str,
    account_id: Optional[str] = Query(None, alias="accountId"),
    user_id: Optional[str] = Depends(get_user_id),
    service: CogsService = Depends(get_cogs_service),
) -> Dict[str, Any]:
    if not account_id:
        raise ValidationError("accountId is required")
    return {"success": True, "data": await service.by_sku(user_id, account_id, sku)}


@router.get("/batches/{lot_id}")
async def batch_details(
    lot_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    service: CogsService = Depends(get_cogs_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.batch_details(user_id, lot_id)}


@router.get("/historical")
async def historical_costs(
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: CogsService = Depends(get_cogs_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.historical(user_id, filters)}


@router.get("/resolve")
async def resolve_cost(
    sku: str = Query(..., min_length=1),
    quantity: int = Query(..., gt=0),
    account_id: Optional[str] = Query(None, alias="accountId"),
    as_of: Optional[str] = Query(None, alias="asOf"),
    user_id: Optional[str] = Depends(get_user_id),
    service: CogsService = Depends(get_cogs_service),
) -> Dict[str, Any]:
    """FIFO cost of a quantity using lots purchased on or before asOf"""
    if not account_id:
        raise ValidationError("accountId is required")
    day = parse_date(as_of, "asOf")
    cutoff = end_of_day(day) if day else None
    return {"success": True, "data": await service.resolve(user_id, account_id, sku, quantity, cutoff)}
