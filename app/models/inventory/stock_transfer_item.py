from decimal import Decimal
from sqlalchemy import Column, Integer, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class StockTransferItem(BaseModel):
    __tablename__ = 'stock_transfer_items'

    stock_transfer_id = Column(Integer, ForeignKey('stock_transfers.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    quantity_requested = Column(Numeric(14, 3), nullable=False)
    quantity_sent = Column(Numeric(14, 3), nullable=False, default=0)
    quantity_received = Column(Numeric(14, 3), nullable=False, default=0)
    unit_cost = Column(Numeric(14, 4), nullable=False, default=0)  # source cost at creation
    notes = Column(Text)

    # Relationships
    transfer = relationship("StockTransfer", back_populates="items")

    @property
    def discrepancy(self) -> Decimal:
        """Quantity lost in transit (sent but never received)"""
        return Decimal(self.quantity_sent or 0) - Decimal(self.quantity_received or 0)
