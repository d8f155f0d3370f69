from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional

GatewayName = Literal["stripe", "paypal", "payu", "wompi", "mercadopago"]

class PaymentIntentCreate(BaseModel):
    order_id: int
    payment_method: GatewayName
    return_url: Optional[str] = Field(None, max_length=2048)
    cancel_url: Optional[str] = Field(None, max_length=2048)
    # Provider specific extras (card token, device session); never logged
    payment_data: Optional[Dict[str, Any]] = None

class PaymentConfirm(BaseModel):
    gateway_data: Optional[Dict[str, Any]] = None

class PaymentRefund(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    reason: Optional[str] = Field(None, max_length=255)
