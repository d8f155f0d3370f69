from sqlalchemy.orm import Session, joinedload
from sqlalchemy import update
from models import Order, OrderItem, OrderStatusHistory, Product, UserAddress, User
from typing import List, Optional
from datetime import datetime
import logging
import secrets
import string

import config
from .cart_service import CartService
from .coupon_service import CouponService
from .exceptions import (
    BusinessRuleError,
    NotFoundError,
    PaymentProcessingError,
    ServiceError,
    ValidationFailedError,
)
from .totals import calculate_totals

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_ATTEMPTS = 10

# Admin status transitions; cancelled and refunded are terminal.
VALID_TRANSITIONS = {
    "pending": ("processing", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered",),
    "delivered": ("refunded",),
    "cancelled": (),
    "refunded": (),
}

TRACKING_STEPS = (
    ("pending", "Order Placed", "Your order has been placed successfully", "created_at"),
    ("processing", "Processing", "Your order is being processed", "processing_at"),
    ("shipped", "Shipped", "Your order has been shipped", "shipped_at"),
    ("delivered", "Delivered", "Your order has been delivered", "delivered_at"),
)


class InsufficientStockError(BusinessRuleError):
    pass


def is_valid_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, ())


class OrderService:
    @staticmethod
    def generate_order_number(db: Session) -> str:
        """``ORD-<year>-<8 uppercase alnum>``, re-drawn while it collides."""
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(8))
            order_number = f"ORD-{datetime.utcnow().year}-{suffix}"
            exists = db.query(Order.id).filter(Order.order_number == order_number).first()
            if not exists:
                return order_number
        raise PaymentProcessingError("Could not generate a unique order number")

    @staticmethod
    def _user_address(db: Session, user: User, address_id: int) -> UserAddress:
        address = db.query(UserAddress).filter(
            UserAddress.id == address_id,
            UserAddress.user_id == user.id
        ).first()
        if not address:
            raise NotFoundError("Address not found")
        return address

    @staticmethod
    def create_order_from_cart(db: Session, user: User, shipping_address_id: int,
                               payment_method: str, billing_address_id: Optional[int] = None,
                               notes: Optional[str] = None, coupon_code: Optional[str] = None) -> Order:
        shipping_address = OrderService._user_address(db, user, shipping_address_id)
        billing_address = shipping_address
        if billing_address_id and billing_address_id != shipping_address_id:
            billing_address = OrderService._user_address(db, user, billing_address_id)

        cart_items = CartService.snapshot(db, user.id)
        if not cart_items:
            raise BusinessRuleError("Cart is empty")

        for item in cart_items:
            product = item.product
            if not product.is_active or product.inventory_quantity < item.quantity:
                raise InsufficientStockError(f"Product {product.name} is not available or insufficient stock")

        coupon = None
        if coupon_code:
            coupon = CouponService.get_by_code(db, coupon_code)
            if coupon is None:
                raise ValidationFailedError({"coupon_code": ["The selected coupon code is invalid."]})
            if not CouponService.is_valid_for_user(db, coupon, user.id):
                logger.info("Coupon not applicable", extra={"coupon": coupon.code, "user_id": user.id})
                coupon = None

        totals = calculate_totals(cart_items, coupon)

        try:
            db_order = Order(
                order_number=OrderService.generate_order_number(db),
                user_id=user.id,
                status="pending",
                payment_status="pending",
                payment_method=payment_method,
                customer_email=user.email,
                shipping_address=shipping_address.to_snapshot(),
                billing_address=billing_address.to_snapshot(),
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                shipping_cost=totals.shipping_cost,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                currency=config.DEFAULT_CURRENCY,
                coupon_id=coupon.id if coupon and totals.discount_amount > 0 else None,
                coupon_code=coupon.code if coupon and totals.discount_amount > 0 else None,
                notes=notes
            )
            db.add(db_order)
            db.flush()  # Get order.id for items

            for item in cart_items:
                product = item.product
                db.add(OrderItem(
                    order_id=db_order.id,
                    product_id=product.id,
                    product_name=product.name,
                    product_sku=product.sku,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    total_price=item.unit_price * item.quantity,
                    variant_options=item.variant_options or {},
                    product_snapshot=product.to_snapshot()
                ))

                # Stock may have moved since validation, only decrement if it still covers the line
                result = db.execute(
                    update(Product)
                    .where(Product.id == product.id, Product.inventory_quantity >= item.quantity)
                    .values(inventory_quantity=Product.inventory_quantity - item.quantity)
                )
                if result.rowcount != 1:
                    raise InsufficientStockError(f"Product {product.name} is not available or insufficient stock")

            if db_order.coupon_id:
                CouponService.record_usage(db, coupon, user.id, db_order.id, totals.discount_amount)

            db.add(OrderStatusHistory(order_id=db_order.id, status="pending", notes="Order placed", changed_by=user.id))
            CartService.clear(db, user.id, None, commit=False)

            db.commit()
        except ServiceError:
            db.rollback()
            raise
        except Exception as e:
            # Rollback entire transaction if any part fails
            db.rollback()
            logger.exception("Order creation failed", extra={"user_id": user.id})
            raise PaymentProcessingError("Failed to create order", detail=str(e))

        db.refresh(db_order)
        logger.info("Order created", extra={
            "order_number": db_order.order_number,
            "user_id": user.id,
            "total": str(db_order.total_amount)
        })
        return db_order

    @staticmethod
    def list_user_orders(db: Session, user_id: int, status_filter: str = None,
                         skip: int = 0, limit: int = 15) -> List[Order]:
        query = db.query(Order).options(joinedload(Order.order_items)).filter(Order.user_id == user_id)
        if status_filter:
            query = query.filter(Order.status == status_filter)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def get_user_order(db: Session, user_id: int, order_id: int) -> Order:
        order = db.query(Order).options(joinedload(Order.order_items)).filter(
            Order.id == order_id,
            Order.user_id == user_id
        ).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    def get_orders(db: Session, skip: int = 0, limit: int = 100, status_filter: str = None,
                   payment_status: str = None, date_str: str = None, search: str = None) -> List[Order]:
        query = db.query(Order).options(joinedload(Order.order_items))

        if status_filter:
            query = query.filter(Order.status == status_filter)

        if payment_status:
            query = query.filter(Order.payment_status == payment_status)

        if date_str:
            try:
                filter_date = datetime.strptime(date_str, "%Y-%m-%d").date()
            except ValueError:
                raise ValidationFailedError({"date": ["The date must be in YYYY-MM-DD format."]})
            start_of_day = datetime.combine(filter_date, datetime.min.time())
            end_of_day = datetime.combine(filter_date, datetime.max.time())
            query = query.filter(Order.created_at >= start_of_day, Order.created_at <= end_of_day)

        if search:
            query = query.filter(Order.order_number.ilike(f"%{search.replace('#', '').strip()}%"))

        return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def get_order(db: Session, order_id: int) -> Order:
        order = db.query(Order).options(
            joinedload(Order.order_items),
            joinedload(Order.status_history)
        ).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    def _restore_inventory(db: Session, order: Order):
        for item in order.order_items:
            db.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .values(inventory_quantity=Product.inventory_quantity + item.quantity)
            )

    @staticmethod
    def cancel_order(db: Session, user_id: int, order_id: int) -> Order:
        order = OrderService.get_user_order(db, user_id, order_id)
        if order.status != "pending":
            raise BusinessRuleError("Order cannot be cancelled at this stage")

        try:
            OrderService._restore_inventory(db, order)
            order.status = "cancelled"
            order.cancelled_at = datetime.utcnow()
            order.cancellation_reason = "Cancelled by customer"
            db.add(OrderStatusHistory(order_id=order.id, status="cancelled",
                                      notes="Cancelled by customer", changed_by=user_id))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Order cancellation failed", extra={"order_id": order_id})
            raise PaymentProcessingError("Failed to cancel order", detail=str(e))

        db.refresh(order)
        logger.info("Order cancelled by customer", extra={"order_number": order.order_number})
        return order

    @staticmethod
    def tracking(db: Session, user_id: int, order_id: int) -> dict:
        order = OrderService.get_user_order(db, user_id, order_id)
        reached = [step[0] for step in TRACKING_STEPS]
        position = reached.index(order.status) if order.status in reached else -1

        steps = []
        for index, (step_status, title, description, timestamp_field) in enumerate(TRACKING_STEPS):
            steps.append({
                "status": step_status,
                "title": title,
                "description": description,
                "completed": index == 0 or index <= position,
                "date": getattr(order, timestamp_field),
            })

        return {
            "order_number": order.order_number,
            "status": order.status,
            "tracking_steps": steps,
            "tracking_number": order.tracking_number,
        }

    @staticmethod
    def apply_transition(db: Session, order: Order, new_status: str, changed_by: Optional[int] = None,
                         notes: Optional[str] = None, tracking_number: Optional[str] = None):
        """Set ``new_status`` with its timestamp and history row. The caller commits."""
        now = datetime.utcnow()
        order.status = new_status
        if new_status == "processing":
            order.processing_at = now
        elif new_status == "shipped":
            order.shipped_at = now
            if tracking_number:
                order.tracking_number = tracking_number
        elif new_status == "delivered":
            order.delivered_at = now
        elif new_status == "cancelled":
            order.cancelled_at = now
            order.cancellation_reason = notes or "Cancelled by administrator"
            OrderService._restore_inventory(db, order)
        elif new_status == "refunded":
            order.refunded_at = now
            if order.payment_status == "paid":
                order.payment_status = "refunded"

        db.add(OrderStatusHistory(order_id=order.id, status=new_status, notes=notes, changed_by=changed_by))

    @staticmethod
    def update_status(db: Session, order: Order, new_status: str, admin_id: Optional[int] = None,
                      notes: Optional[str] = None, tracking_number: Optional[str] = None) -> Order:
        current = order.status
        if not is_valid_transition(current, new_status):
            raise ValidationFailedError(
                {"status": [f"Cannot transition order from {current} to {new_status}."]},
                message="Invalid status transition"
            )

        try:
            OrderService.apply_transition(db, order, new_status, changed_by=admin_id, notes=notes,
                                          tracking_number=tracking_number)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Order status update failed", extra={"order_id": order.id})
            raise PaymentProcessingError("Failed to update order status", detail=str(e))

        db.refresh(order)
        logger.info("Order status updated", extra={
            "order_number": order.order_number,
            "from": current,
            "to": new_status,
            "admin_id": admin_id
        })
        return order
