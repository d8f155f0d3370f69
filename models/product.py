from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text
from datetime import datetime
from .base import Base

class Product(Base):
    __tablename__ = "products"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    inventory_quantity = Column(Integer, nullable=False, default=0)
    weight = Column(Numeric(8, 3), nullable=True)  # kg
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_snapshot(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price": str(self.price),
            "weight": str(self.weight) if self.weight is not None else None,
        }
