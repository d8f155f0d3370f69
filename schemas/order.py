from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled", "refunded"]
CheckoutPaymentMethod = Literal["stripe", "paypal", "payu", "wompi", "mercadopago", "bank_transfer"]

class OrderCreate(BaseModel):
    shipping_address_id: int
    billing_address_id: Optional[int] = None
    payment_method: CheckoutPaymentMethod
    notes: Optional[str] = Field(None, max_length=500)
    coupon_code: Optional[str] = Field(None, max_length=50)

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)
    tracking_number: Optional[str] = Field(None, max_length=100)

class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_sku: str
    unit_price: float
    quantity: int
    total_price: float
    variant_options: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True

class OrderStatusHistoryResponse(BaseModel):
    status: str
    notes: Optional[str] = None
    changed_by: Optional[int] = None
    changed_at: datetime

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int]
    status: str
    payment_status: str
    payment_method: Optional[str]
    subtotal: float
    tax_amount: float
    shipping_cost: float
    discount_amount: float
    total_amount: float
    currency: str
    coupon_code: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    shipping_service: Optional[str] = None
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    processing_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    order_items: List[OrderItemResponse]

    class Config:
        from_attributes = True

class AdminOrderResponse(OrderResponse):
    status_history: List[OrderStatusHistoryResponse] = []
