from decimal import Decimal
from typing import Mapping, Optional
import json
import logging
import uuid

import config
from .base import GatewayError, PaymentGateway, lower_headers

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "CREATED": "pending",
    "SAVED": "pending",
    "APPROVED": "pending",
    "PAYER_ACTION_REQUIRED": "pending",
    "PENDING": "pending",
    "COMPLETED": "completed",
    "REFUNDED": "refunded",
    "PARTIALLY_REFUNDED": "completed",
    "CANCELLED": "failed",
    "VOIDED": "failed",
    "DECLINED": "failed",
    "DENIED": "failed",
}

TRANSMISSION_HEADERS = (
    "paypal-transmission-id",
    "paypal-transmission-time",
    "paypal-transmission-sig",
    "paypal-cert-url",
    "paypal-auth-algo",
)


def format_amount(amount) -> str:
    return f"{Decimal(str(amount)):.2f}"


class PayPalGateway(PaymentGateway):
    """PayPal Orders v2 with client-credentials OAuth."""

    name = "paypal"
    display_name = "PayPal"
    currencies = ["USD", "EUR", "GBP", "CAD", "AUD"]

    def _access_token(self) -> str:
        token = self._request(
            "POST", "/v1/oauth2/token",
            auth=(self.settings.get("client_id", ""), self.settings.get("client_secret", "")),
            data={"grant_type": "client_credentials"}
        )
        if "access_token" not in token:
            raise GatewayError("Failed to get PayPal access token")
        return token["access_token"]

    def _headers(self):
        return {"Authorization": f"Bearer {self._access_token()}", "Content-Type": "application/json"}

    def create_payment_intent(self, data: dict) -> dict:
        headers = self._headers()
        headers["PayPal-Request-Id"] = uuid.uuid4().hex
        body = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "amount": {
                    "currency_code": data["currency"],
                    "value": format_amount(data["amount"]),
                },
                "reference_id": str(data["order_id"]),
                "custom_id": str(data["payment_id"]),
            }],
            "application_context": {
                "return_url": data.get("return_url") or f"{config.APP_URL}/payment/success",
                "cancel_url": data.get("cancel_url") or f"{config.APP_URL}/payment/cancel",
            },
        }
        order = self._request("POST", "/v2/checkout/orders", headers=headers, json=body)
        approval_url = next(
            (link.get("href") for link in order.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None
        )
        return {
            "payment_id": order["id"],
            "approval_url": approval_url,
            "status": self.map_status(order.get("status", "")),
            "gateway_data": order,
        }

    def confirm_payment(self, gateway_payment_id: str, data: Optional[dict] = None) -> dict:
        capture = self._request("POST", f"/v2/checkout/orders/{gateway_payment_id}/capture", headers=self._headers())
        return {
            "payment_id": capture.get("id", gateway_payment_id),
            "status": self.map_status(capture.get("status", "")),
            "gateway_data": capture,
        }

    def get_payment_status(self, gateway_payment_id: str) -> dict:
        order = self._request("GET", f"/v2/checkout/orders/{gateway_payment_id}", headers=self._headers())
        return {
            "payment_id": order.get("id", gateway_payment_id),
            "status": self.map_status(order.get("status", "")),
            "gateway_data": order,
        }

    def refund_payment(self, gateway_payment_id: str, amount: Optional[Decimal] = None,
                       reason: Optional[str] = None) -> dict:
        # Refunds go against the capture, not the order
        order = self.get_payment_status(gateway_payment_id)["gateway_data"]
        try:
            unit = order["purchase_units"][0]
            capture_id = unit["payments"]["captures"][0]["id"]
        except (KeyError, IndexError):
            raise GatewayError("Capture ID not found for refund")

        body = {}
        if amount is not None:
            body["amount"] = {"value": format_amount(amount), "currency_code": unit["amount"]["currency_code"]}
        if reason:
            body["note_to_payer"] = reason

        refund = self._request("POST", f"/v2/payments/captures/{capture_id}/refund",
                               headers=self._headers(), json=body)
        return {
            "refund_id": refund["id"],
            "status": refund.get("status"),
            "amount": Decimal(str((refund.get("amount") or {}).get("value", amount or 0))),
            "gateway_data": refund,
        }

    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes, payload: dict) -> bool:
        headers = lower_headers(headers)
        if not all(headers.get(name) for name in TRANSMISSION_HEADERS):
            return False

        webhook_id = self.settings.get("webhook_id")
        if not webhook_id:
            logger.warning("PayPal webhook id not configured, only transmission headers checked")
            return True

        verification = {
            "auth_algo": headers["paypal-auth-algo"],
            "cert_url": headers["paypal-cert-url"],
            "transmission_id": headers["paypal-transmission-id"],
            "transmission_sig": headers["paypal-transmission-sig"],
            "transmission_time": headers["paypal-transmission-time"],
            "webhook_id": webhook_id,
            "webhook_event": payload if payload else json.loads(body or b"{}"),
        }
        try:
            result = self._request("POST", "/v1/notifications/verify-webhook-signature",
                                   headers=self._headers(), json=verification)
        except GatewayError:
            return False
        return result.get("verification_status") == "SUCCESS"

    def process_webhook(self, payload: dict) -> Optional[dict]:
        event_type = payload.get("event_type")
        resource = payload.get("resource")
        if not event_type or not resource:
            return None

        if event_type.startswith("CHECKOUT.ORDER."):
            payment_id = resource.get("id")
        elif event_type.startswith("PAYMENT.CAPTURE."):
            # Captures point back at the order they belong to
            related = (resource.get("supplementary_data") or {}).get("related_ids") or {}
            payment_id = related.get("order_id") or resource.get("id")
        else:
            return None

        return {
            "payment_id": payment_id,
            "status": self.map_status(resource.get("status", "")),
            "event_type": event_type,
            "gateway_data": resource,
        }

    def map_status(self, provider_status: str) -> str:
        return STATUS_MAP.get(provider_status, "failed")

    def get_config(self) -> dict:
        result = super().get_config()
        result["client_id"] = self.settings.get("client_id")
        return result

    def is_configured(self) -> bool:
        return bool(self.settings.get("client_id")) and bool(self.settings.get("client_secret"))
