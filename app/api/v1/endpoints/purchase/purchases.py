from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from app.api.dependencies import get_actor_id, get_unit_of_work
from app.core.unit_of_work import UnitOfWork
from app.models.shared.enums import PurchaseStatus
from app.schemas.purchase.purchase_schema import (
    PurchaseCancel,
    PurchaseCreate,
    PurchaseReceive,
    PurchaseResponse,
)
from app.services.purchase.purchase_service import PurchaseService
from app.services.purchase.receiving_service import ReceivingService

router = APIRouter()

@router.post("/", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(
    purchase_data: PurchaseCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Create a purchase with computed tax and totals"""
    service = PurchaseService(uow)
    return await service.create_purchase(purchase_data, actor_id)

@router.get("/", response_model=List[PurchaseResponse])
async def get_purchases(
    business_id: int = Query(...),
    status: Optional[PurchaseStatus] = Query(None),
    branch_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    service = PurchaseService(uow)
    return await service.list_purchases(business_id, status=status, branch_id=branch_id, skip=skip, limit=limit)

@router.get("/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(
    purchase_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get purchase by ID"""
    service = PurchaseService(uow)
    purchase = await service.get_purchase_by_id(purchase_id)
    if not purchase:
        raise HTTPException(status_code=404, detail="Purchase not found")
    return purchase

@router.post("/{purchase_id}/order", response_model=PurchaseResponse)
async def mark_ordered(
    purchase_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    service = PurchaseService(uow)
    return await service.mark_ordered(purchase_id, actor_id)

@router.post("/{purchase_id}/receive", response_model=PurchaseResponse)
async def receive_purchase(
    purchase_id: int,
    receive_data: PurchaseReceive,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Receive purchase lines into stock"""
    service = ReceivingService(uow)
    return await service.receive(purchase_id, receive_data, actor_id)

@router.post("/{purchase_id}/cancel", response_model=PurchaseResponse)
async def cancel_purchase(
    purchase_id: int,
    cancel_data: PurchaseCancel,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    service = PurchaseService(uow)
    return await service.cancel_purchase(purchase_id, cancel_data.reason, actor_id)

@router.delete("/{purchase_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_purchase(
    purchase_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Delete a purchase that has not received any stock"""
    service = PurchaseService(uow)
    await service.delete_purchase(purchase_id, actor_id)
