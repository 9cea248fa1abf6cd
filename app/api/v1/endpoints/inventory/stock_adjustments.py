from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from app.api.dependencies import get_actor_id, get_unit_of_work
from app.core.unit_of_work import UnitOfWork
from app.services.inventory.stock_adjustment_service import StockAdjustmentService
from app.schemas.inventory.stock_adjustment import (
    StockAdjustmentCreate,
    StockAdjustmentResponse,
    StockAdjustmentUpdate,
)

router = APIRouter()

@router.post("/", response_model=StockAdjustmentResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    adjustment_data: StockAdjustmentCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Create an adjustment and apply it to stock"""
    service = StockAdjustmentService(uow)
    return await service.create_adjustment(adjustment_data, actor_id)

@router.get("/", response_model=List[StockAdjustmentResponse])
async def get_adjustments(
    business_id: int = Query(...),
    branch_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    approved: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    service = StockAdjustmentService(uow)
    return await service.list_adjustments(
        business_id,
        branch_id=branch_id,
        product_id=product_id,
        is_approved=approved,
        skip=skip,
        limit=limit
    )

@router.get("/{adjustment_id}", response_model=StockAdjustmentResponse)
async def get_adjustment(
    adjustment_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get adjustment by ID"""
    service = StockAdjustmentService(uow)
    adjustment = await service.get_adjustment_by_id(adjustment_id)
    if not adjustment:
        raise HTTPException(status_code=404, detail="Stock adjustment not found")
    return adjustment

@router.put("/{adjustment_id}", response_model=StockAdjustmentResponse)
async def update_adjustment(
    adjustment_id: int,
    adjustment_data: StockAdjustmentUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Update notes of an unapproved adjustment"""
    service = StockAdjustmentService(uow)
    return await service.update_adjustment(adjustment_id, adjustment_data, actor_id)

@router.post("/{adjustment_id}/approve", response_model=StockAdjustmentResponse)
async def approve_adjustment(
    adjustment_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    service = StockAdjustmentService(uow)
    return await service.approve_adjustment(adjustment_id, actor_id)

@router.delete("/{adjustment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_adjustment(
    adjustment_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Reverse and delete an unapproved adjustment"""
    service = StockAdjustmentService(uow)
    await service.delete_adjustment(adjustment_id, actor_id)
