from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Numeric, ForeignKey, Enum as SQLEnum, Date, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import PurchaseStatus

class Purchase(BaseModel):
    __tablename__ = 'purchases'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    supplier_id = Column(Integer, nullable=False)  # Supplier lives in the purchasing module
    purchase_number = Column(String(50), nullable=False)
    purchase_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    exchange_rate = Column(Numeric(18, 8), nullable=False, default=1)  # purchase currency -> base
    tax_inclusive = Column(Boolean, nullable=False, default=False)
    status = Column(SQLEnum(PurchaseStatus), nullable=False, default=PurchaseStatus.DRAFT)
    invoice_number = Column(String(100))
    notes = Column(Text)
    received_by = Column(Integer)  # User ID
    received_date = Column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint('business_id', 'purchase_number', name='uq_purchases_business_number'),
    )

    # Relationships
    items = relationship(
        "PurchaseItem",
        back_populates="purchase",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )
