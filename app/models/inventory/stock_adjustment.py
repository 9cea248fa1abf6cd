from sqlalchemy import Column, Integer, Boolean, DateTime, Text, Numeric, ForeignKey, Enum as SQLEnum
from app.db.base import BaseModel
from app.models.shared.enums import AdjustmentType, AdjustmentReason

class StockAdjustment(BaseModel):
    __tablename__ = 'stock_adjustments'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    adjusted_by = Column(Integer, nullable=False)  # User ID
    adjustment_type = Column(SQLEnum(AdjustmentType), nullable=False)
    quantity_adjusted = Column(Numeric(14, 3), nullable=False)
    before_quantity = Column(Numeric(14, 3), nullable=False)
    after_quantity = Column(Numeric(14, 3), nullable=False)
    reason = Column(SQLEnum(AdjustmentReason), nullable=False)
    cost_impact = Column(Numeric(14, 2), nullable=False, default=0)
    notes = Column(Text)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer)  # User ID
    approved_at = Column(DateTime(timezone=True))
