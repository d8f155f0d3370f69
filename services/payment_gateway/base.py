from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
import hashlib
import hmac
import logging

import requests

import config

logger = logging.getLogger(__name__)

# Every adapter reports one of these.
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


class GatewayError(Exception):
    """Provider call failed or answered with something we can't use."""


class UnsupportedGatewayError(ValueError):
    pass


def to_cents(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1")))


def hmac_sha256(secret: str, message) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def parse_signature_header(value: str) -> Dict[str, str]:
    """Split ``k1=v1,k2=v2`` headers (Stripe, MercadoPago)."""
    parts = {}
    for element in value.split(","):
        key, sep, val = element.strip().partition("=")
        if sep:
            parts.setdefault(key, val)
    return parts


def lower_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


class PaymentGateway(ABC):
    """Common surface of the payment providers.

    Results are plain dicts. ``payment_id`` is the provider's id for the
    payment, ``status`` one of ``PAYMENT_STATUSES`` and ``gateway_data`` the
    provider's raw answer.
    """

    name: str = ""
    display_name: str = ""
    currencies: List[str] = []

    def __init__(self, settings: Optional[dict] = None):
        self.settings = settings if settings is not None else config.PAYMENT_GATEWAYS.get(self.name, {})
        self.base_url = self.settings.get("base_url", "")
        self.timeout = config.PAYMENT_TIMEOUT

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("Gateway request failed", extra={"gateway": self.name, "path": path, "error": str(e)})
            raise GatewayError(f"{self.display_name} request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error("Gateway API error", extra={
                "gateway": self.name,
                "path": path,
                "status_code": response.status_code
            })
            raise GatewayError(f"{self.display_name} API error: {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"{self.display_name} returned an invalid response") from e

    @abstractmethod
    def create_payment_intent(self, data: dict) -> dict:
        """Start a payment. ``data`` carries amount, currency, order and payment ids,
        customer and the return/cancel urls."""

    @abstractmethod
    def confirm_payment(self, gateway_payment_id: str, data: Optional[dict] = None) -> dict:
        pass

    @abstractmethod
    def get_payment_status(self, gateway_payment_id: str) -> dict:
        pass

    @abstractmethod
    def refund_payment(self, gateway_payment_id: str, amount: Optional[Decimal] = None,
                       reason: Optional[str] = None) -> dict:
        pass

    @abstractmethod
    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes, payload: dict) -> bool:
        pass

    @abstractmethod
    def process_webhook(self, payload: dict) -> Optional[dict]:
        """Normalized event, or None when the event is not one we act on."""

    @abstractmethod
    def map_status(self, provider_status: str) -> str:
        pass

    @property
    def supported_currencies(self) -> List[str]:
        return list(self.currencies)

    def get_config(self) -> dict:
        """Public settings only; never secrets."""
        return {
            "name": self.display_name,
            "enabled": bool(self.settings.get("enabled")),
            "currencies": self.supported_currencies,
        }

    @abstractmethod
    def is_configured(self) -> bool:
        pass
