from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from decimal import Decimal

from database import get_db
from models import User
import schemas
from auth import get_current_active_admin
from services import OrderService, ShippingService, payment_service
from .limiter import limiter

router = APIRouter(prefix="/api/admin", tags=["Admin Orders"])


@router.get("/orders")
async def get_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = None,
    date: Optional[str] = None,  # Format: YYYY-MM-DD
    search: Optional[str] = None,  # Order number
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Get all orders (Admin only)"""
    orders = OrderService.get_orders(db, skip, limit, status_filter, payment_status, date, search)
    return {"success": True, "data": [schemas.OrderResponse.model_validate(o) for o in orders]}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Get a single order with its status history (Admin only)"""
    order = OrderService.get_order(db, order_id)
    return {"success": True, "data": schemas.AdminOrderResponse.model_validate(order)}


@router.put("/orders/{order_id}/status")
@limiter.limit("30/minute")
async def update_order_status(
    request: Request,
    order_id: int,
    status_update: schemas.OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Move an order along the status table (Admin only)"""
    db_order = OrderService.get_order(db, order_id)
    order = OrderService.update_status(
        db,
        db_order,
        status_update.status,
        admin_id=current_admin.id,
        notes=status_update.notes,
        tracking_number=status_update.tracking_number
    )
    return {
        "success": True,
        "message": "Order status updated successfully",
        "data": schemas.AdminOrderResponse.model_validate(order)
    }


@router.post("/payments/{payment_id}/refund")
@limiter.limit("10/minute")
async def refund_payment(
    request: Request,
    payment_id: int,
    refund_data: schemas.PaymentRefund,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Refund a completed payment, fully or partially (Admin only)"""
    amount = Decimal(str(refund_data.amount)) if refund_data.amount is not None else None
    data = payment_service.refund(db, payment_id, amount, refund_data.reason, admin_id=current_admin.id)
    return {"success": True, "message": "Refund processed", "data": data}


@router.post("/orders/{order_id}/shipping-label", status_code=201)
@limiter.limit("30/minute")
async def create_shipping_label(
    request: Request,
    order_id: int,
    label_data: schemas.ShippingLabelCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Buy a waybill for a processing order and mark it shipped (Admin only)"""
    label = ShippingService.create_label(
        db,
        order_id,
        label_data.carrier,
        label_data.service_type,
        admin_id=current_admin.id,
        weight=label_data.weight,
        dimensions=label_data.dimensions.model_dump() if label_data.dimensions else None,
        notes=label_data.notes
    )
    return {"success": True, "message": "Shipping label created", "data": label}


@router.get("/shipping/carriers")
async def shipping_carriers(current_admin: User = Depends(get_current_active_admin)):
    """Carrier settings as the app sees them, without credentials (Admin only)"""
    return {"success": True, "data": ShippingService.carriers()}
