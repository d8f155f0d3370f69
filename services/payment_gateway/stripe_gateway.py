from decimal import Decimal
from typing import Mapping, Optional
import hmac
import time

from .base import PaymentGateway, hmac_sha256, lower_headers, parse_signature_header, to_cents


STATUS_MAP = {
    "requires_payment_method": "pending",
    "requires_confirmation": "pending",
    "requires_action": "pending",
    "requires_capture": "pending",
    "processing": "pending",
    "succeeded": "completed",
    "canceled": "failed",
}

CONFIRM_PARAMS = ("payment_method", "return_url", "receipt_email")

# Seconds a signed event stays acceptable, same default as the Stripe SDKs
WEBHOOK_TOLERANCE = 300


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntents over the form-encoded REST API."""

    name = "stripe"
    display_name = "Stripe"
    currencies = ["USD", "EUR", "GBP", "CAD", "AUD", "CHF", "SEK", "NOK", "DKK"]

    def _headers(self):
        return {"Authorization": f"Bearer {self.settings.get('secret_key', '')}"}

    def create_payment_intent(self, data: dict) -> dict:
        form = {
            "amount": to_cents(data["amount"]),
            "currency": data["currency"].lower(),
            "automatic_payment_methods[enabled]": "true",
            "metadata[order_id]": data["order_id"],
            "metadata[payment_id]": data["payment_id"],
        }
        for key, value in (data.get("metadata") or {}).items():
            form[f"metadata[{key}]"] = value

        intent = self._request("POST", "/payment_intents", headers=self._headers(), data=form)
        return {
            "payment_id": intent["id"],
            "client_secret": intent.get("client_secret"),
            "status": self.map_status(intent.get("status", "")),
            "gateway_data": intent,
        }

    def confirm_payment(self, gateway_payment_id: str, data: Optional[dict] = None) -> dict:
        form = {key: value for key, value in (data or {}).items() if key in CONFIRM_PARAMS}
        intent = self._request(
            "POST", f"/payment_intents/{gateway_payment_id}/confirm",
            headers=self._headers(), data=form
        )
        return {
            "payment_id": intent["id"],
            "status": self.map_status(intent.get("status", "")),
            "gateway_data": intent,
        }

    def get_payment_status(self, gateway_payment_id: str) -> dict:
        intent = self._request("GET", f"/payment_intents/{gateway_payment_id}", headers=self._headers())
        return {
            "payment_id": intent["id"],
            "status": self.map_status(intent.get("status", "")),
            "gateway_data": intent,
        }

    def refund_payment(self, gateway_payment_id: str, amount: Optional[Decimal] = None,
                       reason: Optional[str] = None) -> dict:
        form = {"payment_intent": gateway_payment_id}
        if amount is not None:
            form["amount"] = to_cents(amount)
        if reason:
            # Stripe only accepts its own reason codes; free text goes to metadata
            form["metadata[reason]"] = reason

        refund = self._request("POST", "/refunds", headers=self._headers(), data=form)
        return {
            "refund_id": refund["id"],
            "status": refund.get("status"),
            "amount": Decimal(refund.get("amount", 0)) / 100,
            "gateway_data": refund,
        }

    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes, payload: dict) -> bool:
        signature = lower_headers(headers).get("stripe-signature")
        secret = self.settings.get("webhook_secret")
        if not signature or not secret:
            return False

        parts = parse_signature_header(signature)
        if "t" not in parts or "v1" not in parts:
            return False

        try:
            timestamp = int(parts["t"])
        except ValueError:
            return False
        if abs(time.time() - timestamp) > WEBHOOK_TOLERANCE:
            return False

        expected = hmac_sha256(secret, f"{parts['t']}.".encode("utf-8") + body)
        return hmac.compare_digest(expected, parts["v1"])

    def process_webhook(self, payload: dict) -> Optional[dict]:
        event_type = payload.get("type")
        event_data = (payload.get("data") or {}).get("object")
        if not event_type or not event_data:
            return None

        # Only process payment intent events
        if not event_type.startswith("payment_intent."):
            return None

        return {
            "payment_id": event_data.get("id"),
            "status": self.map_status(event_data.get("status", "")),
            "event_type": event_type,
            "gateway_data": event_data,
        }

    def map_status(self, provider_status: str) -> str:
        return STATUS_MAP.get(provider_status, "failed")

    def get_config(self) -> dict:
        result = super().get_config()
        result["public_key"] = self.settings.get("public_key")
        return result

    def is_configured(self) -> bool:
        return bool(self.settings.get("secret_key")) and bool(self.settings.get("public_key"))
