from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal
from app.models.shared.enums import StockMovementType, ReferenceKind, AdjustmentReason

class StockMovementResponse(BaseModel):
    id: int
    business_id: int
    branch_id: int
    product_id: int
    stock_id: int
    user_id: Optional[int] = None
    movement_type: StockMovementType
    quantity: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    unit_cost: Decimal
    reference_type: ReferenceKind
    reference_id: int
    reason: Optional[AdjustmentReason] = None
    notes: Optional[str] = None
    movement_date: Optional[datetime] = None

    class Config:
        from_attributes = True
