from .product import ProductBase, ProductCreate, ProductUpdate, ProductResponse
from .cart import CartItemAdd, CartItemUpdate, CartItemResponse, CartSummary
from .order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderItemResponse,
    OrderStatusHistoryResponse,
    OrderResponse,
    AdminOrderResponse
)
from .payment import PaymentIntentCreate, PaymentConfirm, PaymentRefund
from .user import UserRegister, UserLogin, UserResponse, TokenData, AddressCreate, AddressResponse
from .shipping import PackageDimensions, ShippingDestination, ShippingQuoteRequest, TrackingRequest, ShippingLabelCreate

__all__ = [
    "ProductBase", "ProductCreate", "ProductUpdate", "ProductResponse",
    "CartItemAdd", "CartItemUpdate", "CartItemResponse", "CartSummary",
    "OrderCreate", "OrderStatusUpdate", "OrderItemResponse", "OrderStatusHistoryResponse",
    "OrderResponse", "AdminOrderResponse",
    "PaymentIntentCreate", "PaymentConfirm", "PaymentRefund",
    "UserRegister", "UserLogin", "UserResponse", "TokenData",
    "AddressCreate", "AddressResponse",
    "PackageDimensions", "ShippingDestination", "ShippingQuoteRequest", "TrackingRequest", "ShippingLabelCreate"
]
