from decimal import Decimal
from typing import Mapping, Optional
import hmac

import config
from .base import PaymentGateway, hmac_sha256, lower_headers, parse_signature_header


STATUS_MAP = {
    "pending": "pending",
    "in_process": "pending",
    "in_mediation": "pending",
    "authorized": "pending",
    "approved": "completed",
    "rejected": "failed",
    "cancelled": "failed",
    "refunded": "refunded",
    "charged_back": "refunded",
}


def signature_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


class MercadoPagoGateway(PaymentGateway):
    name = "mercadopago"
    display_name = "MercadoPago"
    currencies = ["ARS", "BRL", "CLP", "COP", "MXN", "PEN", "UYU", "USD"]

    def _headers(self):
        return {"Authorization": f"Bearer {self.settings.get('access_token', '')}"}

    def create_payment_intent(self, data: dict) -> dict:
        customer = data.get("customer") or {}
        payment_data = data.get("payment_data") or {}
        body = {
            "transaction_amount": float(data["amount"]),
            "description": f"Order {data.get('order_number') or data['order_id']}",
            "payment_method_id": payment_data.get("payment_method_id", "visa"),
            "payer": {
                "email": customer.get("email", ""),
                "first_name": customer.get("first_name", ""),
                "last_name": customer.get("last_name", ""),
            },
            "external_reference": data["reference"],
            "notification_url": data.get("webhook_url") or f"{config.APP_URL}/api/payments/webhook/mercadopago",
        }
        if payment_data.get("token"):
            body["token"] = payment_data["token"]
            body["installments"] = payment_data.get("installments", 1)

        payment = self._request("POST", "/v1/payments", headers=self._headers(),
                                json=body)
        return {
            "payment_id": str(payment["id"]),
            "payment_url": ((payment.get("point_of_interaction") or {}).get("transaction_data") or {}).get("ticket_url"),
            "status": self.map_status(payment.get("status", "")),
            "gateway_data": payment,
        }

    def _payment(self, gateway_payment_id: str) -> dict:
        payment = self._request("GET", f"/v1/payments/{gateway_payment_id}", headers=self._headers())
        return {
            "payment_id": str(payment.get("id", gateway_payment_id)),
            "status": self.map_status(payment.get("status", "")),
            "gateway_data": payment,
        }

    def confirm_payment(self, gateway_payment_id: str, data: Optional[dict] = None) -> dict:
        return self._payment(gateway_payment_id)

    def get_payment_status(self, gateway_payment_id: str) -> dict:
        return self._payment(gateway_payment_id)

    def refund_payment(self, gateway_payment_id: str, amount: Optional[Decimal] = None,
                       reason: Optional[str] = None) -> dict:
        body = {}
        if amount is not None:
            body["amount"] = float(amount)

        refund = self._request("POST", f"/v1/payments/{gateway_payment_id}/refunds",
                               headers=self._headers(), json=body)
        return {
            "refund_id": str(refund.get("id")),
            "status": refund.get("status"),
            "amount": Decimal(str(refund.get("amount", amount or 0))),
            "gateway_data": refund,
        }

    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes, payload: dict) -> bool:
        headers = lower_headers(headers)
        signature = headers.get("x-signature")
        request_id = headers.get("x-request-id")
        secret = self.settings.get("webhook_secret")
        if not signature or not request_id or not secret:
            return False

        parts = parse_signature_header(signature)
        ts, received = parts.get("ts"), parts.get("v1")
        data_id = (payload.get("data") or {}).get("id")
        if not ts or not received or data_id is None:
            return False

        expected = hmac_sha256(secret, signature_manifest(str(data_id), request_id, ts))
        return hmac.compare_digest(expected, received)

    def process_webhook(self, payload: dict) -> Optional[dict]:
        event_type = payload.get("type")
        data = payload.get("data")
        if not event_type or not data:
            return None

        if event_type != "payment" or not data.get("id"):
            return None

        # Notifications only carry the id, the status comes from the API
        details = self._payment(str(data["id"]))
        return {
            "payment_id": str(data["id"]),
            "status": details["status"],
            "event_type": event_type,
            "gateway_data": details["gateway_data"],
        }

    def map_status(self, provider_status: str) -> str:
        return STATUS_MAP.get(provider_status, "pending")

    def get_config(self) -> dict:
        result = super().get_config()
        result["public_key"] = self.settings.get("public_key")
        return result

    def is_configured(self) -> bool:
        return bool(self.settings.get("access_token")) and bool(self.settings.get("public_key"))
