from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class Business(BaseModel):
    __tablename__ = 'businesses'

    name = Column(String(200), nullable=False)
    base_currency = Column(String(3), nullable=False, default="USD")  # ISO 4217
    is_active = Column(Boolean, default=True)

    # Relationships
    branches = relationship("Branch", back_populates="business")
