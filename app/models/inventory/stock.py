from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import BaseModel


@dataclass(frozen=True)
class StockSnapshot:
    """Point-in-time copy of a stock row, taken under its lock"""
    stock_id: int
    business_id: int
    branch_id: int
    product_id: int
    quantity: Decimal
    reserved_quantity: Decimal
    unit_cost: Decimal
    last_restocked_at: Optional[datetime]

    @property
    def available_quantity(self) -> Decimal:
        return max(Decimal("0"), self.quantity - self.reserved_quantity)


class Stock(BaseModel):
    """On-hand quantity and weighted-average cost of one product at one branch"""
    __tablename__ = 'stocks'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    quantity = Column(Numeric(14, 3), nullable=False, default=0)
    reserved_quantity = Column(Numeric(14, 3), nullable=False, default=0)
    unit_cost = Column(Numeric(14, 4), nullable=False, default=0)
    last_restocked_at = Column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint('business_id', 'branch_id', 'product_id', name='uq_stocks_business_branch_product'),
    )

    # Relationships
    product = relationship("Product", lazy="joined", innerjoin=True)
    branch = relationship("Branch", lazy="joined", innerjoin=True)

    @property
    def available_quantity(self) -> Decimal:
        return max(Decimal("0"), Decimal(self.quantity or 0) - Decimal(self.reserved_quantity or 0))

    @property
    def stock_value(self) -> Decimal:
        return Decimal(self.quantity or 0) * Decimal(self.unit_cost or 0)

    @property
    def is_low_stock(self) -> bool:
        product = self.product
        return bool(
            product is not None
            and product.track_inventory
            and Decimal(self.quantity or 0) < Decimal(product.minimum_stock_level or 0)
        )

    def snapshot(self) -> StockSnapshot:
        return StockSnapshot(
            stock_id=self.id,
            business_id=self.business_id,
            branch_id=self.branch_id,
            product_id=self.product_id,
            quantity=Decimal(self.quantity or 0),
            reserved_quantity=Decimal(self.reserved_quantity or 0),
            unit_cost=Decimal(self.unit_cost or 0),
            last_restocked_at=self.last_restocked_at,
        )
