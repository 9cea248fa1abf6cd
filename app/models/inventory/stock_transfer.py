from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum as SQLEnum, Date, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import TransferStatus

class StockTransfer(BaseModel):
    __tablename__ = 'stock_transfers'

    transfer_number = Column(String(50), nullable=False)
    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False, index=True)
    from_branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    to_branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False)
    status = Column(SQLEnum(TransferStatus), nullable=False, default=TransferStatus.PENDING)
    transfer_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date)
    transfer_reason = Column(String(255))
    notes = Column(Text)
    cancellation_reason = Column(Text)
    initiated_by = Column(Integer, nullable=False)  # User ID
    approved_by = Column(Integer)  # User ID
    sent_by = Column(Integer)  # User ID
    received_by = Column(Integer)  # User ID
    approved_at = Column(DateTime(timezone=True))
    sent_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint('business_id', 'transfer_number', name='uq_stock_transfers_business_number'),
    )

    # Relationships
    items = relationship(
        "StockTransferItem",
        back_populates="transfer",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="StockTransferItem.id",
    )
