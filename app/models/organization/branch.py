from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import BaseModel

class Branch(BaseModel):
    __tablename__ = 'branches'

    business_id = Column(Integer, ForeignKey('businesses.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20))
    address = Column(Text)
    is_active = Column(Boolean, default=True)

    # Relationships
    business = relationship("Business", back_populates="branches")
