from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

from config import CART_MAX_QUANTITY

class CartItemAdd(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1, le=CART_MAX_QUANTITY)
    variant_options: Optional[Dict[str, Any]] = None

class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=CART_MAX_QUANTITY)

class CartProduct(BaseModel):
    id: int
    name: str
    sku: str
    price: float
    inventory_quantity: int

    class Config:
        from_attributes = True

class CartItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: float
    total_price: float
    variant_options: Dict[str, Any] = {}
    product: Optional[CartProduct] = None

    class Config:
        from_attributes = True

class CartSummary(BaseModel):
    items_count: int
    subtotal: float