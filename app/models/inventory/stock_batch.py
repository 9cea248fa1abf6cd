from decimal import Decimal
from sqlalchemy import Column, Integer, String, Date, Text, Numeric, ForeignKey, Index
from app.db.base import BaseModel

class StockBatch(BaseModel):
    """A received lot, drawn down oldest-first"""
    __tablename__ = 'stock_batches'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    stock_id = Column(Integer, ForeignKey('stocks.id'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    purchase_item_id = Column(Integer, ForeignKey('purchase_items.id'))
    batch_number = Column(String(50), nullable=False, index=True)
    purchase_reference = Column(String(50))
    quantity_received = Column(Numeric(14, 3), nullable=False)
    quantity_remaining = Column(Numeric(14, 3), nullable=False)
    unit_cost = Column(Numeric(14, 4), nullable=False)
    received_date = Column(Date, nullable=False)
    expiry_date = Column(Date)
    notes = Column(Text)

    __table_args__ = (
        Index('ix_stock_batches_fifo', 'stock_id', 'received_date', 'id'),
    )

    @property
    def is_fully_used(self) -> bool:
        return Decimal(self.quantity_remaining or 0) <= 0

    @property
    def remaining_value(self) -> Decimal:
        return Decimal(self.quantity_remaining or 0) * Decimal(self.unit_cost or 0)
