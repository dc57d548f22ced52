"""
Expenses API Endpoints
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, field_validator

from seller_analytics.profit.filters import ReportFilters, as_naive_utc
from seller_analytics.serving.api.dependencies import get_expenses_service, get_user_id, report_filters
from seller_analytics.services import ExpensesService

router = APIRouter()


class AllocatedProductIn(BaseModel):
    sku: str
    percentage: float


class ExpenseCreate(BaseModel):
    """Discretionary expense, optionally pinned to SKUs by percentage"""
    account_id: str = Field(..., alias="accountId")
    marketplace_id: Optional[str] = Field(None, alias="marketplaceId")
    type: str = "one-time"
    category: str = Field(..., min_length=1)
    amount: float
    currency: str = Field("USD", min_length=3, max_length=3)
    description: Optional[str] = None
    allocated_products: Optional[List[AllocatedProductIn]] = Field(None, alias="allocatedProducts")
    incurred_at: datetime = Field(..., alias="incurredAt")

    model_config = {"populate_by_name": True}

    @field_validator("incurred_at")
    @classmethod
    def naive_incurred_at(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


@router.post("", status_code=201)
async def create_expense(
    payload: ExpenseCreate,
    user_id: Optional[str] = Depends(get_user_id),
    service: ExpensesService = Depends(get_expenses_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.create(user_id, payload.model_dump())}


@router.get("")
async def list_expenses(
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ExpensesService = Depends(get_expenses_service),
) -> Dict[str, Any]:
    return {"success": True, "data": await service.list_expenses(user_id, filters)}


@router.get("/allocated/{sku}")
async def allocated_to_sku(
    sku: str,
    filters: ReportFilters = Depends(report_filters),
    user_id: Optional[str] = Depends(get_user_id),
    service: ExpensesService = Depends(get_expenses_service),
) -> Dict[str, Any]:
    """Expenses carried by one SKU, explicit and by revenue share"""
    return {"success": True, "data": await service.allocated_to_sku(user_id, filters, sku)}


@router.post("/import")
async def import_expenses(
    request: Request,
    account_id: Optional[str] = Query(None, alias="accountId"),
    user_id: Optional[str] = Depends(get_user_id),
    service: ExpensesService = Depends(get_expenses_service),
) -> Dict[str, Any]:
    """CSV body, one expense per row"""
    content = await request.body()
    return {"success": True, "data": await service.bulk_import(user_id, account_id, content)}
