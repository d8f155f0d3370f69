from .exceptions import (
    ServiceError,
    BusinessRuleError,
    NotFoundError,
    ConflictError,
    ValidationFailedError,
    PaymentProcessingError,
    UpstreamError
)
from .product_service import ProductService
from .cart_service import CartService
from .coupon_service import CouponService
from .order_service import OrderService
from .payment_service import PaymentService, payment_service
from .shipping_service import ShippingService

__all__ = [
    "ServiceError",
    "BusinessRuleError",
    "NotFoundError",
    "ConflictError",
    "ValidationFailedError",
    "PaymentProcessingError",
    "UpstreamError",
    "ProductService",
    "CartService",
    "CouponService",
    "OrderService",
    "PaymentService",
    "payment_service",
    "ShippingService"
]
