from sqlalchemy import Column, Integer, DateTime, Text, Numeric, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import composite
from sqlalchemy.sql import func
from app.db.base import BaseModel
from app.models.shared.enums import StockMovementType, ReferenceKind, AdjustmentReason
from app.models.shared.references import MovementReference

class StockMovement(BaseModel):
    """One immutable quantity change on a stock row"""
    __tablename__ = 'stock_movements'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    stock_id = Column(Integer, ForeignKey('stocks.id'), nullable=False, index=True)
    user_id = Column(Integer)  # User ID
    movement_type = Column(SQLEnum(StockMovementType), nullable=False)
    quantity = Column(Numeric(14, 3), nullable=False)  # signed delta
    previous_quantity = Column(Numeric(14, 3), nullable=False)
    new_quantity = Column(Numeric(14, 3), nullable=False)
    unit_cost = Column(Numeric(14, 4), nullable=False, default=0)
    reference_type = Column(SQLEnum(ReferenceKind), nullable=False)
    reference_id = Column(Integer, nullable=False)
    reason = Column(SQLEnum(AdjustmentReason))
    notes = Column(Text)
    movement_date = Column(DateTime(timezone=True), server_default=func.now())

    reference = composite(MovementReference, reference_type, reference_id)

    __table_args__ = (
        Index('ix_stock_movements_reference', 'reference_type', 'reference_id'),
        Index('ix_stock_movements_ledger_key', 'business_id', 'branch_id', 'product_id'),
    )
