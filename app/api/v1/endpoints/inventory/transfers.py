from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from app.api.dependencies import get_actor_id, get_unit_of_work
from app.core.unit_of_work import UnitOfWork
from app.services.inventory.transfer_service import TransferService
from app.schemas.inventory.stock_transfer import (
    StockTransferCancel,
    StockTransferCreate,
    StockTransferReceive,
    StockTransferResponse,
)
from app.models.shared.enums import TransferStatus

router = APIRouter()

@router.post("/", response_model=StockTransferResponse, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    transfer_data: StockTransferCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Create a pending transfer"""
    service = TransferService(uow)
    return await service.create_transfer(transfer_data, actor_id)

@router.get("/", response_model=List[StockTransferResponse])
async def get_transfers(
    business_id: int = Query(...),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    from_branch_id: Optional[int] = Query(None),
    to_branch_id: Optional[int] = Query(None),
    status: Optional[TransferStatus] = Query(None),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get all transfers with optional filters"""
    service = TransferService(uow)
    return await service.list_transfers(
        business_id,
        status=status,
        from_branch_id=from_branch_id,
        to_branch_id=to_branch_id,
        skip=skip,
        limit=limit
    )

@router.get("/{transfer_id}", response_model=StockTransferResponse)
async def get_transfer(
    transfer_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get transfer by ID"""
    service = TransferService(uow)
    transfer = await service.get_transfer_by_id(transfer_id)
    if not transfer:
        raise HTTPException(status_code=404, detail="Transfer not found")
    return transfer

@router.post("/{transfer_id}/approve", response_model=StockTransferResponse)
async def approve_transfer(
    transfer_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    service = TransferService(uow)
    return await service.approve_transfer(transfer_id, actor_id)

@router.post("/{transfer_id}/send", response_model=StockTransferResponse)
async def send_transfer(
    transfer_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Deduct stock at the source and mark the transfer in transit"""
    service = TransferService(uow)
    return await service.send_transfer(transfer_id, actor_id)

@router.post("/{transfer_id}/receive", response_model=StockTransferResponse)
async def receive_transfer(
    transfer_id: int,
    receive_data: StockTransferReceive,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Add received quantities at the destination and complete the transfer"""
    service = TransferService(uow)
    return await service.receive_transfer(transfer_id, receive_data, actor_id)

@router.post("/{transfer_id}/cancel", response_model=StockTransferResponse)
async def cancel_transfer(
    transfer_id: int,
    cancel_data: StockTransferCancel,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    service = TransferService(uow)
    return await service.cancel_transfer(transfer_id, cancel_data.cancellation_reason, actor_id)

@router.delete("/{transfer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transfer(
    transfer_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Delete a pending transfer"""
    service = TransferService(uow)
    await service.delete_transfer(transfer_id, actor_id)
