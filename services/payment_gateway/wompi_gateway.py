from decimal import Decimal
from typing import Mapping, Optional
import hmac

import config
from .base import GatewayError, PaymentGateway, hmac_sha256, lower_headers, to_cents

STATUS_MAP = {
    "PENDING": "pending",
    "APPROVED": "completed",
    "DECLINED": "failed",
    "VOIDED": "failed",
    "ERROR": "failed",
}


class WompiGateway(PaymentGateway):
    name = "wompi"
    display_name = "Wompi"
    currencies = ["COP"]

    def _headers(self):
        return {"Authorization": f"Bearer {self.settings.get('private_key', '')}"}

    def _transaction(self, gateway_payment_id: str) -> dict:
        result = self._request("GET", f"/v1/transactions/{gateway_payment_id}", headers=self._headers())
        transaction = result.get("data") or {}
        return {
            "payment_id": transaction.get("id", gateway_payment_id),
            "status": self.map_status(transaction.get("status", "")),
            "gateway_data": transaction,
        }

    def create_payment_intent(self, data: dict) -> dict:
        customer = data.get("customer") or {}
        payment_data = data.get("payment_data") or {}
        body = {
            "amount_in_cents": to_cents(data["amount"]),
            "currency": data["currency"],
            "customer_email": customer.get("email", ""),
            "reference": data["reference"],
            "redirect_url": data.get("return_url") or f"{config.APP_URL}/payment/success",
            "payment_method": payment_data.get("payment_method") or {"type": "CARD"},
        }
        if payment_data.get("acceptance_token"):
            body["acceptance_token"] = payment_data["acceptance_token"]

        result = self._request("POST", "/v1/transactions", headers=self._headers(), json=body)
        transaction = result.get("data") or {}
        return {
            "payment_id": transaction.get("id"),
            "payment_url": transaction.get("payment_link_url"),
            "status": self.map_status(transaction.get("status", "")),
            "gateway_data": transaction,
        }

    def confirm_payment(self, gateway_payment_id: str, data: Optional[dict] = None) -> dict:
        return self._transaction(gateway_payment_id)

    def get_payment_status(self, gateway_payment_id: str) -> dict:
        return self._transaction(gateway_payment_id)

    def refund_payment(self, gateway_payment_id: str, amount: Optional[Decimal] = None,
                       reason: Optional[str] = None) -> dict:
        raise GatewayError("Refunds must be processed manually through Wompi dashboard")

    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes, payload: dict) -> bool:
        signature = lower_headers(headers).get("x-wompi-signature")
        secret = self.settings.get("webhook_secret")
        if not signature or not secret:
            return False
        return hmac.compare_digest(hmac_sha256(secret, body), signature)

    def process_webhook(self, payload: dict) -> Optional[dict]:
        event = payload.get("event")
        data = payload.get("data")
        if not event or not data:
            return None

        if event != "transaction.updated":
            return None

        transaction = data.get("transaction") or {}
        if not transaction.get("id"):
            return None
        return {
            "payment_id": transaction["id"],
            "status": self.map_status(transaction.get("status", "")),
            "event_type": event,
            "gateway_data": transaction,
        }

    def map_status(self, provider_status: str) -> str:
        return STATUS_MAP.get(provider_status, "pending")

    def get_config(self) -> dict:
        result = super().get_config()
        result["public_key"] = self.settings.get("public_key")
        return result

    def is_configured(self) -> bool:
        return bool(self.settings.get("public_key")) and bool(self.settings.get("private_key"))
