from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, validator
from datetime import datetime, date
from app.models.shared.enums import PurchaseStatus
from app.utils.quantities import quantize_quantity

class PurchaseItemBase(BaseModel):
    product_id: int
    quantity_ordered: Decimal
    unit_cost: Decimal
    tax_rate: Decimal = Decimal('0')

    @validator('quantity_ordered')
    def validate_positive_quantity(cls, v):
        if quantize_quantity(v) <= 0:
            raise ValueError('Quantity must be positive')
        return v

    @validator('unit_cost', 'tax_rate')
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Unit cost and tax rate cannot be negative')
        return v

class PurchaseItemCreate(PurchaseItemBase):
    pass

class PurchaseItemResponse(PurchaseItemBase):
    id: int
    purchase_id: int
    quantity_received: Decimal
    tax_amount: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True

class PurchaseBase(BaseModel):
    branch_id: int
    supplier_id: int
    purchase_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    currency: Optional[str] = None
    exchange_rate: Decimal = Decimal('1')
    tax_inclusive: bool = False
    invoice_number: Optional[str] = None
    notes: Optional[str] = None

    @validator('exchange_rate')
    def validate_exchange_rate(cls, v):
        if v <= 0:
            raise ValueError('Exchange rate must be positive')
        return v

class PurchaseCreate(PurchaseBase):
    business_id: int
    status: PurchaseStatus = PurchaseStatus.DRAFT
    items: List[PurchaseItemCreate]

    @validator('status')
    def validate_initial_status(cls, v):
        if v not in (PurchaseStatus.DRAFT, PurchaseStatus.ORDERED):
            raise ValueError('A purchase starts as draft or ordered')
        return v

    @validator('items')
    def validate_items_not_empty(cls, v):
        if not v:
            raise ValueError('At least one item is required')
        return v

class PurchaseResponse(PurchaseBase):
    id: int
    business_id: int
    purchase_number: str
    status: PurchaseStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    received_by: Optional[int] = None
    received_date: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[PurchaseItemResponse] = []

    class Config:
        from_attributes = True

class ReceiveLine(BaseModel):
    purchase_item_id: int
    quantity_received: Decimal
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None

    @validator('quantity_received')
    def validate_positive_quantity(cls, v):
        if quantize_quantity(v) <= 0:
            raise ValueError('Received quantity must be positive')
        return v

class PurchaseReceive(BaseModel):
    items: List[ReceiveLine]
    received_date: Optional[date] = None
    notes: Optional[str] = None

    @validator('items')
    def validate_items_not_empty(cls, v):
        if not v:
            raise ValueError('At least one item is required')
        return v

class PurchaseCancel(BaseModel):
    reason: str
