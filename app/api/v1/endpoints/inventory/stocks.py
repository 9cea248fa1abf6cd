from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from datetime import date
from app.api.dependencies import get_actor_id, get_unit_of_work
from app.core.unit_of_work import UnitOfWork
from app.models.shared.enums import StockMovementType
from app.schemas.inventory.stock import (
    BatchDrawResponse,
    BranchStockSummary,
    ReconciliationResponse,
    ReturnRecord,
    SaleRecord,
    SaleResponse,
    StockBatchResponse,
    StockResponse,
    StockSettingsUpdate,
)
from app.schemas.inventory.stock_movement import StockMovementResponse
from app.services.inventory.stock_batch_service import StockBatchService
from app.services.inventory.stock_ledger_service import StockLedgerService
from app.services.inventory.stock_movement_service import StockMovementService
from app.services.inventory.stock_service import StockService

router = APIRouter()

@router.get("/", response_model=List[StockResponse])
async def list_stock(
    business_id: int = Query(...),
    branch_id: Optional[int] = Query(None),
    low_stock_only: bool = Query(False),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get stock rows, optionally only those below minimum level"""
    service = StockLedgerService(uow.session)
    return await service.list_stock(business_id, branch_id=branch_id, low_stock_only=low_stock_only)

@router.get("/summary", response_model=List[BranchStockSummary])
async def branch_summary(
    business_id: int = Query(...),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get quantity and value per branch"""
    service = StockLedgerService(uow.session)
    return await service.branch_summary(business_id)

@router.get("/movements", response_model=List[StockMovementResponse])
async def list_movements(
    business_id: int = Query(...),
    branch_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    movement_type: Optional[StockMovementType] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get stock movement history"""
    service = StockMovementService(uow.session)
    return await service.list_movements(
        business_id,
        branch_id=branch_id,
        product_id=product_id,
        movement_type=movement_type,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit
    )

@router.get("/batches/expiring", response_model=List[StockBatchResponse])
async def expiring_batches(
    business_id: int = Query(...),
    days: Optional[int] = Query(None, ge=0),
    branch_id: Optional[int] = Query(None),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    service = StockBatchService(uow.session)
    return await service.expiring_batches(business_id, days=days, branch_id=branch_id)

@router.get("/lookup", response_model=StockResponse)
async def lookup_stock(
    business_id: int = Query(...),
    branch_id: int = Query(...),
    product_id: int = Query(...),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get stock for one product at one branch"""
    service = StockLedgerService(uow.session)
    stock = await service.get_stock(business_id, branch_id, product_id)
    if not stock:
        raise HTTPException(status_code=404, detail="Stock not found")
    return stock

@router.post("/sale", response_model=SaleResponse)
async def record_sale(
    sale_data: SaleRecord,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Deduct sold stock, consuming batches oldest first"""
    service = StockService(uow)
    result = await service.record_sale(
        sale_data.business_id,
        sale_data.branch_id,
        sale_data.product_id,
        sale_data.quantity,
        sale_data.sale_id,
        actor_id,
        notes=sale_data.notes
    )
    return SaleResponse(
        stock=StockResponse.model_validate(result.change.stock),
        movement_id=result.change.movement.id,
        cost_of_goods_sold=result.cost_of_goods_sold,
        unit_cost=result.consumption.unit_cost,
        unbatched_quantity=result.consumption.unbatched_quantity,
        draws=[BatchDrawResponse.model_validate(draw) for draw in result.consumption.draws]
    )

@router.post("/return", response_model=StockResponse)
async def record_return(
    return_data: ReturnRecord,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Put returned goods back into stock"""
    service = StockService(uow)
    change = await service.record_return(
        return_data.business_id,
        return_data.branch_id,
        return_data.product_id,
        return_data.quantity,
        return_data.return_id,
        actor_id,
        unit_cost=return_data.unit_cost,
        notes=return_data.notes
    )
    return change.stock

@router.get("/{stock_id}", response_model=StockResponse)
async def get_stock(
    stock_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get stock by ID"""
    service = StockLedgerService(uow.session)
    stock = await service.get_stock_by_id(stock_id)
    if not stock:
        raise HTTPException(status_code=404, detail="Stock not found")
    return stock

@router.patch("/{stock_id}", response_model=StockResponse)
async def update_stock_settings(
    stock_id: int,
    settings_data: StockSettingsUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    actor_id: int = Depends(get_actor_id)
):
    """Update reserved quantity"""
    service = StockLedgerService(uow.session)
    async with uow.atomic():
        stock = await service.update_settings(stock_id, settings_data.reserved_quantity, actor_id)
    return stock

@router.get("/{stock_id}/batches", response_model=List[StockBatchResponse])
async def available_batches(
    stock_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Get open batches in consumption order"""
    service = StockBatchService(uow.session)
    return await service.available_batches(stock_id)

@router.get("/{stock_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile_stock(
    stock_id: int,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Compare the stock quantity with the sum of its movements"""
    stock = await StockLedgerService(uow.session).get_stock_by_id(stock_id)
    if not stock:
        raise HTTPException(status_code=404, detail="Stock not found")
    return await StockMovementService(uow.session).reconcile(stock)
