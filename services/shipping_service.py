from datetime import datetime
from decimal import Decimal
from typing import List, Mapping, Optional
import logging

from sqlalchemy.orm import Session

import config
from models import Order, ShippingLabel, User
from .exceptions import (
    BusinessRuleError,
    NotFoundError,
    PaymentProcessingError,
    ServiceError,
    UpstreamError,
    ValidationFailedError,
)
from .order_service import OrderService, is_valid_transition
from .shipping import CarrierError, ShippingCarrier, ShippingCarrierFactory, UnsupportedDestinationError
from .totals import total_weight

logger = logging.getLogger(__name__)

# Order status a tracking status implies; exceptions and returns are left to an admin
ORDER_STATUS_FOR_SHIPMENT = {
    "picked_up": "shipped",
    "in_transit": "shipped",
    "out_for_delivery": "shipped",
    "delivered": "delivered",
}


def _label_payload(label: ShippingLabel) -> dict:
    return {
        "label_id": label.id,
        "order_id": label.order_id,
        "carrier": label.carrier,
        "service_type": label.service_type,
        "tracking_number": label.tracking_number,
        "label_url": label.label_url,
        "cost": float(label.cost),
        "currency": label.currency,
        "status": label.status,
        "estimated_delivery_date": label.estimated_delivery_date,
    }


class ShippingService:
    """Carrier quotes, waybills and the tracking updates that move orders along."""

    @staticmethod
    def _enabled_carrier(name: str) -> ShippingCarrier:
        if not ShippingCarrierFactory.is_enabled(name):
            raise ValidationFailedError({"carrier": ["The selected carrier is not available."]})
        return ShippingCarrierFactory.create(name)

    @staticmethod
    def _check_package(carrier: ShippingCarrier, service_type: str, country: str, weight: Decimal):
        if service_type not in carrier.services:
            raise ValidationFailedError({"service_type": [f"{carrier.display_name} does not offer {service_type}."]})
        if not carrier.supports_destination(country):
            raise ValidationFailedError({"destination_country": [f"{carrier.display_name} does not ship to {country}."]})
        if weight > Decimal(str(carrier.max_weight)):
            raise ValidationFailedError({"weight": [f"The weight may not be greater than {carrier.max_weight} kg."]})

    @staticmethod
    def available_methods(destination: dict) -> List[dict]:
        """Quotes from every enabled carrier serving ``destination``, cheapest first."""
        destination = dict(destination, origin=config.SHIPPING_ORIGIN)
        weight = Decimal(str(destination["weight"]))
        methods = []
        for name in ShippingCarrierFactory.enabled_carriers():
            carrier = ShippingCarrierFactory.create(name)
            if not carrier.supports_destination(destination["country"]) or weight > Decimal(str(carrier.max_weight)):
                continue
            try:
                quotes = carrier.available_methods(destination)
            except CarrierError as e:
                logger.warning("Carrier methods unavailable", extra={"carrier": name, "error": str(e)})
                continue
            for quote in quotes:
                methods.append(dict(quote, price=float(quote["price"]), carrier=name,
                                    carrier_name=carrier.display_name))

        methods.sort(key=lambda method: method["price"])
        return methods

    @staticmethod
    def calculate(data: dict) -> dict:
        carrier = ShippingService._enabled_carrier(data["carrier"])
        ShippingService._check_package(carrier, data["service_type"], data["country"], Decimal(str(data["weight"])))
        data = dict(data)
        data["origin"] = data.get("origin") or config.SHIPPING_ORIGIN

        try:
            quote = carrier.calculate(data)
        except UnsupportedDestinationError as e:
            raise ValidationFailedError({"destination_city": [str(e)]})
        except CarrierError as e:
            logger.error("Shipping quote failed", extra={"carrier": carrier.name, "error": str(e)})
            raise UpstreamError("Could not get a shipping quote")

        quote["price"] = float(quote["price"])
        quote["carrier_name"] = carrier.display_name
        quote["delivery_time"] = carrier.estimated_delivery(data["service_type"])
        return quote

    @staticmethod
    def zones() -> dict:
        return config.SHIPPING_ZONES

    @staticmethod
    def carriers() -> dict:
        return ShippingCarrierFactory.carrier_configs()

    @staticmethod
    def coverage(carrier_name: str, location: Optional[dict] = None) -> dict:
        if not ShippingCarrierFactory.is_supported(carrier_name):
            raise NotFoundError("Unsupported shipping carrier")
        return ShippingCarrierFactory.create(carrier_name).coverage(location)

    @staticmethod
    def track(db: Session, user: User, carrier_name: str, tracking_number: str) -> dict:
        if not ShippingCarrierFactory.is_supported(carrier_name):
            raise NotFoundError("Unsupported shipping carrier")

        query = db.query(ShippingLabel).filter(
            ShippingLabel.carrier == carrier_name,
            ShippingLabel.tracking_number == tracking_number
        )
        if not user.is_admin:
            query = query.join(Order).filter(Order.user_id == user.id)
        if not query.first():
            raise NotFoundError("Shipment not found")

        try:
            return ShippingCarrierFactory.create(carrier_name).track(tracking_number)
        except CarrierError as e:
            logger.error("Shipment tracking failed", extra={"carrier": carrier_name, "error": str(e)})
            raise UpstreamError("Could not fetch tracking information")

    @staticmethod
    def create_label(db: Session, order_id: int, carrier_name: str, service_type: str,
                     admin_id: Optional[int] = None, weight: Optional[float] = None,
                     dimensions: Optional[dict] = None, notes: Optional[str] = None) -> dict:
        carrier = ShippingService._enabled_carrier(carrier_name)
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        if not is_valid_transition(order.status, "shipped"):
            raise BusinessRuleError("Only processing orders can be shipped")

        address = order.shipping_address or {}
        package_weight = Decimal(str(weight)) if weight is not None else total_weight(order.order_items)
        ShippingService._check_package(carrier, service_type, address.get("country", ""), package_weight)

        try:
            label_data = carrier.create_label({
                "reference": order.order_number,
                "service_type": service_type,
                "sender": config.SHIPPING_ORIGIN,
                "recipient": {
                    "name": f"{address.get('first_name', '')} {address.get('last_name', '')}".strip(),
                    "address": " ".join(filter(None, (address.get("address_line_1"), address.get("address_line_2")))),
                    "city": address.get("city", ""),
                    "state": address.get("state", ""),
                    "phone": address.get("phone"),
                    "email": order.customer_email,
                },
                "package": {
                    "weight": package_weight,
                    "dimensions": dimensions,
                    "declared_value": order.subtotal,
                    "description": f"Order {order.order_number}",
                },
                "notes": notes,
            })
        except UnsupportedDestinationError as e:
            raise ValidationFailedError({"destination_city": [str(e)]})
        except CarrierError as e:
            logger.error("Shipping label creation failed", extra={"order_id": order.id, "error": str(e)})
            raise UpstreamError("Could not create the shipping label")

        try:
            label = ShippingLabel(
                order_id=order.id,
                carrier=carrier.name,
                service_type=service_type,
                tracking_number=label_data["tracking_number"],
                label_url=label_data.get("label_url"),
                label_data=label_data.get("carrier_data"),
                cost=label_data.get("cost") or 0,
                currency=label_data.get("currency") or carrier.currency,
                status="created",
                tracking_events=[],
                estimated_delivery_date=label_data.get("estimated_delivery_date"),
                notes=notes
            )
            db.add(label)
            order.shipping_carrier = carrier.name
            order.shipping_service = service_type
            OrderService.apply_transition(db, order, "shipped", changed_by=admin_id,
                                          notes=f"Shipped with {carrier.display_name}",
                                          tracking_number=label.tracking_number)
            db.commit()
        except Exception as e:
            db.rollback()
            # The waybill exists at the carrier at this point
            logger.exception("Shipping label could not be stored", extra={
                "order_id": order_id,
                "tracking_number": label_data["tracking_number"]
            })
            raise PaymentProcessingError("Failed to store shipping label", detail=str(e))

        db.refresh(label)
        logger.info("Shipping label created", extra={
            "order_number": order.order_number,
            "carrier": carrier.name,
            "tracking_number": label.tracking_number
        })
        return _label_payload(label)

    @staticmethod
    def _advance_order(db: Session, order: Order, target: str, notes: str):
        """Walk the order towards ``target`` through the admin transition table."""
        while order.status != target:
            if is_valid_transition(order.status, target):
                step = target
            elif target == "delivered" and is_valid_transition(order.status, "shipped"):
                step = "shipped"
            else:
                logger.info("Tracking update does not move order", extra={
                    "order_number": order.order_number,
                    "status": order.status,
                    "target": target
                })
                return
            OrderService.apply_transition(db, order, step, notes=notes)

    @staticmethod
    def handle_webhook(db: Session, carrier_name: str, headers: Mapping[str, str],
                       body: bytes, payload: dict) -> str:
        if not ShippingCarrierFactory.is_supported(carrier_name):
            raise NotFoundError("Unsupported shipping carrier")

        logger.info("Shipping webhook received", extra={"carrier": carrier_name})
        carrier = ShippingCarrierFactory.create(carrier_name)

        if not carrier.verify_webhook_signature(headers, body):
            logger.warning("Invalid webhook signature", extra={"carrier": carrier_name})
            raise BusinessRuleError("Invalid signature")

        update = carrier.process_webhook(payload)
        if not update:
            return "Webhook ignored"

        try:
            label = db.query(ShippingLabel).filter(
                ShippingLabel.carrier == carrier_name,
                ShippingLabel.tracking_number == update["tracking_number"]
            ).with_for_update().first()
            if not label:
                logger.warning("Shipment not found for webhook", extra={
                    "carrier": carrier_name,
                    "tracking_number": update["tracking_number"]
                })
                raise NotFoundError("Shipment not found")

            events = list(label.tracking_events or [])
            if events and events[-1] == update["event"]:
                db.rollback()
                return "Webhook already processed"

            label.tracking_events = events + [update["event"]]
            label.status = update["status"]
            if update["status"] == "delivered":
                label.actual_delivery_date = datetime.utcnow()

            target = ORDER_STATUS_FOR_SHIPMENT.get(update["status"])
            if target:
                ShippingService._advance_order(db, label.order, target,
                                               notes=update["event"].get("description") or f"Carrier update: {update['status']}")
            db.commit()
        except ServiceError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error("Shipping webhook processing failed", extra={"carrier": carrier_name, "error": str(e)})
            raise PaymentProcessingError("Webhook processing failed", detail=str(e))

        logger.info("Shipping webhook processed", extra={
            "carrier": carrier_name,
            "tracking_number": label.tracking_number,
            "status": label.status
        })
        return "Webhook processed"
