from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from app.models.shared.enums import AdjustmentType, AdjustmentReason
from app.utils.quantities import quantize_quantity

class StockAdjustmentBase(BaseModel):
    branch_id: int
    product_id: int
    adjustment_type: AdjustmentType
    quantity_adjusted: Decimal
    reason: AdjustmentReason
    notes: Optional[str] = None

    @validator('quantity_adjusted')
    def validate_positive_quantity(cls, v):
        if quantize_quantity(v) <= 0:
            raise ValueError('Adjusted quantity must be positive')
        return v

class StockAdjustmentCreate(StockAdjustmentBase):
    business_id: int

class StockAdjustmentUpdate(BaseModel):
    notes: Optional[str] = None

class StockAdjustmentResponse(StockAdjustmentBase):
    id: int
    business_id: int
    adjusted_by: int
    before_quantity: Decimal
    after_quantity: Decimal
    cost_impact: Decimal
    is_approved: bool
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
