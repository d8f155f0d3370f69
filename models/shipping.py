from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base

class ShippingLabel(Base):
    __tablename__ = "shipping_labels"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    carrier = Column(String(50), nullable=False)
    service_type = Column(String(50), nullable=False)
    tracking_number = Column(String(100), nullable=False, index=True)
    label_url = Column(String(2048), nullable=True)
    label_data = Column(JSON, nullable=True)
    cost = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    # created, picked_up, in_transit, out_for_delivery, delivered, exception, returned
    status = Column(String(20), nullable=False, default="created")
    tracking_events = Column(JSON, nullable=True)
    estimated_delivery_date = Column(String(32), nullable=True)
    actual_delivery_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="shipping_labels")
