from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional
import hashlib
import hmac
import uuid

import config
from .base import GatewayError, PaymentGateway


SERVICE_PATH = "/payments-api/4.0/service.cgi"

STATUS_MAP = {
    "APPROVED": "completed",
    "DECLINED": "failed",
    "EXPIRED": "failed",
    "ERROR": "failed",
    "PENDING": "pending",
}

# state_pol codes sent on confirmation pages
POL_STATUS_MAP = {
    "4": "completed",
    "5": "failed",
    "6": "failed",
    "104": "failed",
    "7": "pending",
}


def format_signature_value(value) -> str:
    """PayU signs ``150.0`` for 150.00 but ``150.25`` for 150.25."""
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{amount:.2f}"
    if text.endswith("0"):
        return text[:-1]
    return text


def generate_signature(api_key: str, merchant_id: str, reference: str, value, currency: str,
                       state: Optional[str] = None) -> str:
    parts = [api_key, merchant_id, reference, format_signature_value(value), currency]
    if state is not None:
        parts.append(str(state))
    return hashlib.md5("~".join(parts).encode("utf-8")).hexdigest()


class PayUGateway(PaymentGateway):
    """PayU Latam JSON service API."""

    name = "payu"
    display_name = "PayU"
    currencies = ["COP", "USD", "PEN", "MXN", "ARS", "BRL"]

    def _merchant(self):
        return {"apiKey": self.settings.get("api_key", ""), "apiLogin": self.settings.get("api_login", "")}

    def _command(self, command: str, **fields) -> dict:
        body = {
            "language": "es",
            "command": command,
            "merchant": self._merchant(),
            "test": bool(self.settings.get("test_mode")),
        }
        body.update(fields)
        result = self._request("POST", SERVICE_PATH,
                               headers={"Content-Type": "application/json", "Accept": "application/json"},
                               json=body)
        if result.get("code") != "SUCCESS":
            raise GatewayError(f"PayU {command} failed: {result.get('error') or 'Unknown error'}")
        return result

    def create_payment_intent(self, data: dict) -> dict:
        customer = data.get("customer") or {}
        payment_data = data.get("payment_data") or {}
        card = payment_data.get("card") or {}
        reference = data["reference"]
        full_name = f"{customer.get('first_name', '')} {customer.get('last_name', '')}".strip()
        address = {
            "street1": customer.get("address", ""),
            "city": customer.get("city", ""),
            "state": customer.get("state", ""),
            "country": customer.get("country") or "CO",
            "postalCode": customer.get("postal_code", ""),
        }

        transaction = {
            "order": {
                "accountId": self.settings.get("account_id", ""),
                "referenceCode": reference,
                "description": f"Order {data.get('order_number') or data['order_id']}",
                "language": "es",
                "signature": generate_signature(
                    self.settings.get("api_key", ""), self.settings.get("merchant_id", ""),
                    reference, data["amount"], data["currency"]
                ),
                "notifyUrl": data.get("webhook_url") or f"{config.APP_URL}/api/payments/webhook/payu",
                "additionalValues": {
                    "TX_VALUE": {"value": float(data["amount"]), "currency": data["currency"]},
                },
                "buyer": {
                    "merchantBuyerId": str(customer.get("id", "")),
                    "fullName": full_name,
                    "emailAddress": customer.get("email", ""),
                    "contactPhone": customer.get("phone") or "",
                    "shippingAddress": address,
                },
            },
            "payer": {
                "merchantPayerId": str(customer.get("id", "")),
                "fullName": full_name,
                "emailAddress": customer.get("email", ""),
                "contactPhone": customer.get("phone") or "",
                "billingAddress": address,
            },
            "creditCard": {
                "number": card.get("number", ""),
                "securityCode": card.get("cvc", ""),
                "expirationDate": f"{card.get('exp_year', '')}/{str(card.get('exp_month', '')).zfill(2)}",
                "name": card.get("name") or full_name,
            },
            "extraParameters": {"INSTALLMENTS_NUMBER": 1},
            "type": "AUTHORIZATION_AND_CAPTURE",
            "paymentMethod": payment_data.get("payment_method", "VISA"),
            "paymentCountry": address["country"],
            "deviceSessionId": payment_data.get("device_session_id") or uuid.uuid4().hex,
            "ipAddress": payment_data.get("ip_address", "127.0.0.1"),
        }

        result = self._command("SUBMIT_TRANSACTION", transaction=transaction)
        response = result.get("transactionResponse") or {}
        return {
            "payment_id": response.get("transactionId"),
            "order_id": response.get("orderId"),
            "status": self.map_status(response.get("state", "")),
            "response_code": response.get("responseCode"),
            "gateway_data": response,
        }

    def confirm_payment(self, gateway_payment_id: str, data: Optional[dict] = None) -> dict:
        data = data or {}
        result = self._command(
            "ORDER_DETAIL_BY_REFERENCE_CODE",
            details={"referenceCode": data.get("reference") or gateway_payment_id}
        )
        payload = (result.get("result") or {}).get("payload") or []
        if not payload:
            raise GatewayError("PayU order not found")
        transactions = payload[0].get("transactions") or []
        if not transactions:
            raise GatewayError("PayU transaction not found")

        transaction = transactions[0]
        return {
            "payment_id": transaction.get("id", gateway_payment_id),
            "status": self.map_status((transaction.get("transactionResponse") or {}).get("state", "")),
            "gateway_data": transaction,
        }

    def get_payment_status(self, gateway_payment_id: str) -> dict:
        return self.confirm_payment(gateway_payment_id)

    def refund_payment(self, gateway_payment_id: str, amount: Optional[Decimal] = None,
                       reason: Optional[str] = None) -> dict:
        transaction = {
            "order": {"id": gateway_payment_id},
            "type": "REFUND",
            "reason": reason or "Customer request",
            "parentTransactionId": gateway_payment_id,
        }
        if amount is not None:
            transaction["additionalValues"] = {"TX_VALUE": {"value": float(amount)}}

        result = self._command("SUBMIT_TRANSACTION", transaction=transaction)
        response = result.get("transactionResponse") or {}
        return {
            "refund_id": response.get("transactionId"),
            "status": self.map_status(response.get("state", "")),
            "amount": amount,
            "gateway_data": response,
        }

    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes, payload: dict) -> bool:
        signature = payload.get("sign") or payload.get("signature")
        reference = payload.get("reference_sale")
        if not signature or not reference:
            return False

        try:
            expected = generate_signature(
                self.settings.get("api_key", ""),
                self.settings.get("merchant_id", ""),
                reference,
                payload.get("value", "0"),
                payload.get("currency", ""),
                payload.get("state_pol")
            )
        except ArithmeticError:
            return False
        return hmac.compare_digest(expected, str(signature).lower())

    def process_webhook(self, payload: dict) -> Optional[dict]:
        reference = payload.get("reference_sale")
        state = payload.get("state_pol")
        transaction_id = payload.get("transaction_id")
        if not reference or not state or not transaction_id:
            return None

        return {
            "payment_id": transaction_id,
            "reference": reference,
            "status": POL_STATUS_MAP.get(str(state), "pending"),
            "event_type": "payment.updated",
            "gateway_data": payload,
        }

    def map_status(self, provider_status: str) -> str:
        return STATUS_MAP.get(provider_status, "pending")

    def get_config(self) -> dict:
        result = super().get_config()
        result["merchant_id"] = self.settings.get("merchant_id")
        result["test_mode"] = bool(self.settings.get("test_mode"))
        return result

    def is_configured(self) -> bool:
        return all(self.settings.get(key) for key in ("api_key", "api_login", "merchant_id", "account_id"))
