from datetime import datetime
from decimal import Decimal
from typing import Mapping, Optional
import logging
import secrets

from sqlalchemy.orm import Session

from models import Order, OrderStatusHistory, Payment, User
from .exceptions import (
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    PaymentProcessingError,
    ServiceError,
    ValidationFailedError,
)
from .payment_gateway import PaymentGatewayFactory
from .totals import to_money

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed", "refunded")

METHOD_DETAILS = {
    "stripe": ("card", "Pay with credit or debit card"),
    "paypal": ("wallet", "Pay with your PayPal account"),
    "payu": ("gateway", "Pay with PayU gateway"),
    "wompi": ("gateway", "Pay with Wompi gateway"),
    "mercadopago": ("gateway", "Pay with MercadoPago"),
}

# Fields of an intent result that are safe to hand back to the client
INTENT_PUBLIC_FIELDS = ("payment_id", "status", "client_secret", "approval_url", "payment_url")


def generate_reference() -> str:
    return f"PAY_{secrets.token_hex(8).upper()}"


def _order_summary(order: Order) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "total_amount": float(order.total_amount),
        "currency": order.currency,
    }


class PaymentService:
    """Payment state tracking on top of the gateway adapters.

    ``confirm`` and the webhook share ``_apply_status``, so whichever arrives
    first moves the payment and the order, and the other becomes a no-op.
    """

    def list_methods(self):
        methods = []
        for name, info in PaymentGatewayFactory.enabled_gateways().items():
            method_type, description = METHOD_DETAILS.get(name, ("gateway", ""))
            methods.append({
                "id": name,
                "name": info["name"],
                "type": method_type,
                "description": description,
                "currencies": info["class"].currencies,
            })
        return methods

    def _apply_status(self, db: Session, payment: Payment, new_status: str,
                      failure_reason: Optional[str] = None) -> bool:
        """Move ``payment`` to ``new_status`` and mirror it on the order.

        Returns False when the transition is not one we act on.
        """
        current = payment.status
        if new_status == current:
            return False

        now = datetime.utcnow()
        order = payment.order

        if current == "pending" and new_status == "completed" and order.status == "cancelled":
            # Money arrived for an order that no longer exists for the customer
            payment.status = "completed"
            payment.completed_at = now
            order.payment_status = "refund_pending"
            db.add(OrderStatusHistory(order_id=order.id, status="cancelled",
                                      notes="Payment received after cancellation, refund required"))
            logger.warning("Payment completed on a cancelled order", extra={
                "payment_id": payment.id,
                "order_number": order.order_number
            })
        elif current == "pending" and new_status == "completed":
            payment.status = "completed"
            payment.completed_at = now
            order.payment_status = "paid"
            order.paid_at = now
            if order.status == "pending":
                order.status = "processing"
                order.processing_at = now
                db.add(OrderStatusHistory(order_id=order.id, status="processing",
                                          notes=f"Payment completed via {payment.payment_method}"))
        elif current == "pending" and new_status == "failed":
            payment.status = "failed"
            payment.failed_at = now
            payment.failure_reason = failure_reason or "Payment declined by gateway"
            order.payment_status = "failed"
        elif current == "completed" and new_status == "refunded":
            payment.status = "refunded"
            payment.refunded_at = now
            order.payment_status = "refunded"
        else:
            logger.warning("Ignored payment status transition", extra={
                "payment_id": payment.id,
                "from": current,
                "to": new_status
            })
            return False

        logger.info("Payment status changed", extra={
            "payment_id": payment.id,
            "order_number": order.order_number,
            "from": current,
            "to": new_status
        })
        return True

    def _own_payment(self, db: Session, user: User, payment_id: int) -> Payment:
        payment = db.query(Payment).filter(Payment.id == payment_id, Payment.user_id == user.id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    def create_intent(self, db: Session, user: User, order_id: int, payment_method: str,
                      return_url: Optional[str] = None, cancel_url: Optional[str] = None,
                      payment_data: Optional[dict] = None) -> dict:
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
        if not order:
            raise NotFoundError("Order not found or not available for payment")
        if order.payment_status == "paid":
            raise ConflictError("Order has already been paid")
        if order.status != "pending":
            raise NotFoundError("Order not found or not available for payment")

        if not PaymentGatewayFactory.is_enabled(payment_method):
            raise ValidationFailedError({"payment_method": ["The selected payment method is not available."]})

        gateway = PaymentGatewayFactory.create(payment_method)
        currency = order.currency
        if currency not in gateway.supported_currencies:
            raise ValidationFailedError({"payment_method": [f"{payment_method} does not support {currency}."]})

        address = order.billing_address or {}
        try:
            payment = Payment(
                order_id=order.id,
                user_id=user.id,
                payment_method=payment_method,
                amount=order.total_amount,
                currency=currency,
                status="pending",
                reference=generate_reference()
            )
            db.add(payment)
            db.flush()

            intent = gateway.create_payment_intent({
                "amount": Decimal(str(order.total_amount)),
                "currency": currency,
                "order_id": order.id,
                "order_number": order.order_number,
                "payment_id": payment.id,
                "reference": payment.reference,
                "customer": {
                    "id": user.id,
                    "email": user.email,
                    "name": user.name,
                    "first_name": address.get("first_name", ""),
                    "last_name": address.get("last_name", ""),
                    "phone": address.get("phone") or user.phone,
                    "address": address.get("address_line_1", ""),
                    "city": address.get("city", ""),
                    "state": address.get("state", ""),
                    "country": address.get("country", ""),
                    "postal_code": address.get("postal_code", ""),
                },
                "return_url": return_url,
                "cancel_url": cancel_url,
                "payment_data": payment_data or {},
                "metadata": {"order_number": order.order_number, "user_id": user.id},
            })

            payment.gateway_payment_id = str(intent["payment_id"]) if intent.get("payment_id") else None
            payment.gateway_data = {"intent": intent.get("gateway_data")}
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error("Payment intent creation failed", extra={
                "user_id": user.id,
                "order_id": order_id,
                "gateway": payment_method,
                "error": str(e)
            })
            raise PaymentProcessingError("Error creating payment intent", detail=str(e))

        db.refresh(payment)
        logger.info("Payment intent created", extra={"payment_id": payment.id, "gateway": payment_method})
        return {
            "payment_id": payment.id,
            "reference": payment.reference,
            "payment_intent": {key: intent.get(key) for key in INTENT_PUBLIC_FIELDS if intent.get(key) is not None},
            "order": _order_summary(order),
        }

    def confirm(self, db: Session, user: User, payment_id: int, gateway_data: Optional[dict] = None) -> dict:
        payment = self._own_payment(db, user, payment_id)

        if payment.status in TERMINAL_STATUSES:
            return {
                "payment_id": payment.id,
                "status": payment.status,
                "order_status": payment.order.status,
                "payment_status": payment.order.payment_status,
                "already_processed": True,
            }

        try:
            gateway = PaymentGatewayFactory.create(payment.payment_method)
            data = {"reference": payment.reference}
            data.update(gateway_data or {})
            result = gateway.confirm_payment(payment.gateway_payment_id, data)

            self._apply_status(db, payment, result["status"], result.get("failure_reason"))
            stored = dict(payment.gateway_data or {})
            stored["confirmation"] = result.get("gateway_data")
            payment.gateway_data = stored
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error("Payment confirmation failed", extra={
                "payment_id": payment_id,
                "user_id": user.id,
                "error": str(e)
            })
            raise PaymentProcessingError("Error confirming payment", detail=str(e))

        db.refresh(payment)
        return {
            "payment_id": payment.id,
            "status": payment.status,
            "order_status": payment.order.status,
            "payment_status": payment.order.payment_status,
            "already_processed": False,
        }

    def get_status(self, db: Session, user: User, payment_id: int) -> dict:
        payment = self._own_payment(db, user, payment_id)
        return {
            "id": payment.id,
            "status": payment.status,
            "payment_method": payment.payment_method,
            "amount": float(payment.amount),
            "currency": payment.currency,
            "reference": payment.reference,
            "created_at": payment.created_at,
            "completed_at": payment.completed_at,
            "failed_at": payment.failed_at,
            "refunded_at": payment.refunded_at,
            "failure_reason": payment.failure_reason,
            "order": _order_summary(payment.order),
        }

    def _find_for_event(self, db: Session, provider: str, event: dict) -> Optional[Payment]:
        query = db.query(Payment).filter(Payment.payment_method == provider)
        payment = None
        if event.get("payment_id"):
            payment = query.filter(Payment.gateway_payment_id == str(event["payment_id"])).with_for_update().first()
        if payment is None and event.get("reference"):
            payment = query.filter(Payment.reference == event["reference"]).with_for_update().first()
        return payment

    def handle_webhook(self, db: Session, provider: str, headers: Mapping[str, str],
                       body: bytes, payload: dict) -> str:
        if not PaymentGatewayFactory.is_supported(provider):
            raise NotFoundError("Unsupported payment provider")

        logger.info("Payment webhook received", extra={"provider": provider})
        gateway = PaymentGatewayFactory.create(provider)

        if not gateway.verify_webhook_signature(headers, body, payload):
            logger.warning("Invalid webhook signature", extra={"provider": provider})
            raise BusinessRuleError("Invalid signature")

        try:
            event = gateway.process_webhook(payload)
        except Exception as e:
            logger.error("Webhook processing failed", extra={"provider": provider, "error": str(e)})
            raise PaymentProcessingError("Webhook processing failed", detail=str(e))

        if not event:
            return "Webhook ignored"

        try:
            payment = self._find_for_event(db, provider, event)
            if not payment:
                logger.warning("Payment not found for webhook", extra={
                    "provider": provider,
                    "gateway_payment_id": event.get("payment_id")
                })
                raise NotFoundError("Payment not found")

            if payment.status == event["status"]:
                db.rollback()
                return "Webhook already processed"

            changed = self._apply_status(db, payment, event["status"], event.get("failure_reason"))
            if changed:
                stored = dict(payment.gateway_data or {})
                stored["webhook"] = {"event_type": event.get("event_type"), "data": event.get("gateway_data")}
                payment.gateway_data = stored
            db.commit()
        except ServiceError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error("Webhook processing failed", extra={"provider": provider, "error": str(e)})
            raise PaymentProcessingError("Webhook processing failed", detail=str(e))

        logger.info("Webhook processed successfully", extra={
            "provider": provider,
            "payment_id": payment.id,
            "status": payment.status
        })
        return "Webhook processed"

    def refund(self, db: Session, payment_id: int, amount: Optional[Decimal] = None,
               reason: Optional[str] = None, admin_id: Optional[int] = None) -> dict:
        payment = db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.status != "completed":
            raise BusinessRuleError("Only completed payments can be refunded")

        refunds = list((payment.gateway_data or {}).get("refunds", []))
        already_refunded = sum((Decimal(entry["amount"]) for entry in refunds), Decimal("0"))
        remaining = to_money(payment.amount) - already_refunded
        refund_amount = to_money(amount) if amount is not None else remaining
        if refund_amount <= 0:
            raise ValidationFailedError({"amount": ["The refund amount must be at least 0.01."]})
        if refund_amount > remaining:
            raise ValidationFailedError({"amount": [f"The refund amount may not be greater than {remaining}."]})

        is_full = refund_amount == remaining
        try:
            gateway = PaymentGatewayFactory.create(payment.payment_method)
            result = gateway.refund_payment(
                payment.gateway_payment_id,
                None if is_full and not refunds else refund_amount,
                reason
            )

            refunds.append({
                "refund_id": result.get("refund_id"),
                "amount": str(refund_amount),
                "status": result.get("status"),
                "reason": reason,
                "refunded_by": admin_id,
                "refunded_at": datetime.utcnow().isoformat(),
            })
            stored = dict(payment.gateway_data or {})
            stored["refunds"] = refunds
            payment.gateway_data = stored

            if is_full:
                self._apply_status(db, payment, "refunded")
            else:
                payment.order.payment_status = "partially_paid"
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error("Payment refund failed", extra={"payment_id": payment_id, "error": str(e)})
            raise PaymentProcessingError("Error processing refund", detail=str(e))

        db.refresh(payment)
        logger.info("Payment refunded", extra={
            "payment_id": payment.id,
            "amount": str(refund_amount),
            "full": is_full,
            "admin_id": admin_id
        })
        return {
            "payment_id": payment.id,
            "status": payment.status,
            "refunded_amount": float(refund_amount),
            "total_refunded": float(already_refunded + refund_amount),
            "order_payment_status": payment.order.payment_status,
        }


payment_service = PaymentService()
