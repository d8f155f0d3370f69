from .base import Base
from .user import User, UserAddress
from .product import Product
from .cart import CartItem
from .coupon import Coupon, CouponUsage
from .order import Order, OrderItem, OrderStatusHistory
from .payment import Payment
from .shipping import ShippingLabel

__all__ = [
    "Base",
    "User",
    "UserAddress",
    "Product",
    "CartItem",
    "Coupon",
    "CouponUsage",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Payment",
    "ShippingLabel"
]
