from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from models import User
import schemas
from auth import get_current_user
from services import OrderService
from .limiter import limiter

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.get("")
async def get_user_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Orders of the current user, most recent first"""
    orders = OrderService.list_user_orders(db, current_user.id, status_filter, skip, limit)
    return {"success": True, "data": [schemas.OrderResponse.model_validate(o) for o in orders]}


@router.post("", status_code=201)
@limiter.limit("10/minute")
async def create_order(
    request: Request,
    order_data: schemas.OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Turn the current cart into an order"""
    order = OrderService.create_order_from_cart(
        db,
        current_user,
        shipping_address_id=order_data.shipping_address_id,
        billing_address_id=order_data.billing_address_id,
        payment_method=order_data.payment_method,
        notes=order_data.notes,
        coupon_code=order_data.coupon_code
    )
    return {
        "success": True,
        "message": "Order created successfully",
        "data": schemas.OrderResponse.model_validate(order)
    }


@router.get("/{order_id}")
async def get_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = OrderService.get_user_order(db, current_user.id, order_id)
    return {"success": True, "data": schemas.OrderResponse.model_validate(order)}


@router.post("/{order_id}/cancel")
@limiter.limit("10/minute")
async def cancel_order(
    request: Request,
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel a pending order and put its stock back"""
    order = OrderService.cancel_order(db, current_user.id, order_id)
    return {
        "success": True,
        "message": "Order cancelled successfully",
        "data": schemas.OrderResponse.model_validate(order)
    }


@router.get("/{order_id}/tracking")
async def order_tracking(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": OrderService.tracking(db, current_user.id, order_id)}
