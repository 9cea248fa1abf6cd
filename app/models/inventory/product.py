from sqlalchemy import Column, Integer, String, Boolean, Text, Numeric, ForeignKey, UniqueConstraint
from app.db.base import BaseModel

class Product(BaseModel):
    __tablename__ = 'products'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=False)
    description = Column(Text)
    track_inventory = Column(Boolean, nullable=False, default=True)
    allow_negative_stock = Column(Boolean, nullable=False, default=False)
    minimum_stock_level = Column(Numeric(14, 3), default=0)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint('business_id', 'sku', name='uq_products_business_sku'),
    )
