from pydantic import BaseModel, validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from app.utils.quantities import quantize_quantity

class StockResponse(BaseModel):
    id: int
    business_id: int
    branch_id: int
    product_id: int
    quantity: Decimal
    reserved_quantity: Decimal
    available_quantity: Decimal
    unit_cost: Decimal
    stock_value: Decimal
    is_low_stock: bool
    last_restocked_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class StockSettingsUpdate(BaseModel):
    reserved_quantity: Decimal

    @validator('reserved_quantity')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Reserved quantity cannot be negative')
        return v

class BranchStockSummary(BaseModel):
    branch_id: int
    branch_name: str
    product_count: int
    total_quantity: Decimal
    total_value: Decimal

class StockBatchResponse(BaseModel):
    id: int
    stock_id: int
    product_id: int
    branch_id: int
    purchase_item_id: Optional[int] = None
    batch_number: str
    purchase_reference: Optional[str] = None
    quantity_received: Decimal
    quantity_remaining: Decimal
    unit_cost: Decimal
    received_date: date
    expiry_date: Optional[date] = None

    class Config:
        from_attributes = True

class ReconciliationResponse(BaseModel):
    stock_id: int
    ledger_quantity: Decimal
    movement_quantity: Decimal
    movement_count: int
    variance: Decimal
    is_consistent: bool

    class Config:
        from_attributes = True

class SaleRecord(BaseModel):
    business_id: int
    branch_id: int
    product_id: int
    quantity: Decimal
    sale_id: int
    notes: Optional[str] = None

    @validator('quantity')
    def validate_positive_quantity(cls, v):
        if quantize_quantity(v) <= 0:
            raise ValueError('Quantity must be positive')
        return v

class ReturnRecord(SaleRecord):
    sale_id: Optional[int] = None
    return_id: int
    unit_cost: Optional[Decimal] = None

class BatchDrawResponse(BaseModel):
    batch_id: int
    batch_number: str
    quantity: Decimal
    unit_cost: Decimal

    class Config:
        from_attributes = True

class SaleResponse(BaseModel):
    stock: StockResponse
    movement_id: int
    cost_of_goods_sold: Decimal
    unit_cost: Decimal
    unbatched_quantity: Decimal
    draws: List[BatchDrawResponse] = []
