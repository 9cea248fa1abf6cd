from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class PurchaseItem(BaseModel):
    __tablename__ = 'purchase_items'

    purchase_id = Column(Integer, ForeignKey('purchases.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    quantity_ordered = Column(Numeric(14, 3), nullable=False)
    quantity_received = Column(Numeric(14, 3), nullable=False, default=0)
    unit_cost = Column(Numeric(14, 4), nullable=False)  # purchase currency
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    line_total = Column(Numeric(14, 2), nullable=False, default=0)

    # Relationships
    purchase = relationship("Purchase", back_populates="items")

    @property
    def quantity_outstanding(self) -> Decimal:
        return Decimal(self.quantity_ordered or 0) - Decimal(self.quantity_received or 0)

    @property
    def is_fully_received(self) -> bool:
        return Decimal(self.quantity_received or 0) >= Decimal(self.quantity_ordered or 0)
