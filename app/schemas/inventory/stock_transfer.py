from pydantic import BaseModel, validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from app.models.shared.enums import TransferStatus
from app.utils.quantities import quantize_quantity

class StockTransferItemBase(BaseModel):
    product_id: int
    quantity_requested: Decimal
    notes: Optional[str] = None

    @validator('quantity_requested')
    def validate_positive_quantity(cls, v):
        if quantize_quantity(v) <= 0:
            raise ValueError('Requested quantity must be positive')
        return v

class StockTransferItemCreate(StockTransferItemBase):
    pass

class StockTransferItemResponse(StockTransferItemBase):
    id: int
    stock_transfer_id: int
    quantity_sent: Decimal
    quantity_received: Decimal
    unit_cost: Decimal
    discrepancy: Decimal

    class Config:
        from_attributes = True

class StockTransferBase(BaseModel):
    from_branch_id: int
    to_branch_id: int
    transfer_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    transfer_reason: Optional[str] = None
    notes: Optional[str] = None

    @validator('to_branch_id')
    def validate_different_branches(cls, v, values):
        if 'from_branch_id' in values and v == values['from_branch_id']:
            raise ValueError('Source and destination branches must be different')
        return v

class StockTransferCreate(StockTransferBase):
    business_id: int
    items: List[StockTransferItemCreate]

    @validator('items')
    def validate_items_not_empty(cls, v):
        if not v:
            raise ValueError('At least one item is required')
        return v

class StockTransferResponse(StockTransferBase):
    id: int
    business_id: int
    transfer_number: str
    status: TransferStatus
    initiated_by: int
    approved_by: Optional[int] = None
    sent_by: Optional[int] = None
    received_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[StockTransferItemResponse] = []

    class Config:
        from_attributes = True

class TransferReceiveItem(BaseModel):
    item_id: int
    quantity_received: Decimal

    @validator('quantity_received')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Received quantity cannot be negative')
        return v

class StockTransferReceive(BaseModel):
    items: List[TransferReceiveItem] = []
    notes: Optional[str] = None

class StockTransferCancel(BaseModel):
    cancellation_reason: str

    @validator('cancellation_reason')
    def validate_reason(cls, v):
        if not v.strip():
            raise ValueError('Cancellation reason is required')
        return v
