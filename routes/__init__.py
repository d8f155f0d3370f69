from fastapi import APIRouter
from .auth import router as auth_router
from .products import router as products_router
from .cart import router as cart_router
from .addresses import router as addresses_router
from .orders import router as orders_router
from .payments import router as payments_router
from .admin_orders import router as admin_orders_router
from .shipping import router as shipping_router
from .health import router as health_router

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(auth_router, tags=["Authentication"])
api_router.include_router(products_router, tags=["Products"])
api_router.include_router(cart_router, tags=["Cart"])
api_router.include_router(addresses_router, tags=["Addresses"])
api_router.include_router(orders_router, tags=["Orders"])
api_router.include_router(payments_router, tags=["Payments"])
api_router.include_router(admin_orders_router, tags=["Admin Orders"])
api_router.include_router(shipping_router, tags=["Shipping"])
api_router.include_router(health_router, tags=["Health"])

__all__ = ["api_router"]
