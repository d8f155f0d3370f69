from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional
import hmac
import logging
import unicodedata

import requests

import config
from ..payment_gateway.base import hmac_sha256, lower_headers

logger = logging.getLogger(__name__)

# Every carrier reports one of these.
SHIPMENT_STATUSES = (
    "created", "picked_up", "in_transit", "out_for_delivery", "delivered", "exception", "returned",
)


class CarrierError(Exception):
    """Carrier call failed or answered with something we can't use."""


class UnsupportedCarrierError(ValueError):
    pass


class UnsupportedDestinationError(CarrierError):
    pass


def normalize_place(name: str) -> str:
    """``"Bogotá D.C."`` -> ``"bogota d.c."``, for lookups by city name."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip().lower()


class ShippingCarrier(ABC):
    """Common surface of the shipping carriers.

    Quotes are plain dicts carrying ``service_type``, ``price``,
    ``estimated_days`` and ``currency``. Tracking statuses are one of
    ``SHIPMENT_STATUSES``.
    """

    name: str = ""
    display_name: str = ""
    currency: str = ""
    countries: List[str] = []
    services: Dict[str, str] = {}
    max_weight: float = 0
    max_dimensions: Dict[str, int] = {}
    signature_header = "x-signature"

    def __init__(self, settings: Optional[dict] = None):
        self.settings = settings if settings is not None else config.SHIPPING_CARRIERS.get(self.name, {})
        self.base_url = self.settings.get("base_url", "")
        self.timeout = config.SHIPPING_TIMEOUT

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("Carrier request failed", extra={"carrier": self.name, "path": path, "error": str(e)})
            raise CarrierError(f"{self.display_name} request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error("Carrier API error", extra={
                "carrier": self.name,
                "path": path,
                "status_code": response.status_code
            })
            raise CarrierError(f"{self.display_name} API error: {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise CarrierError(f"{self.display_name} returned an invalid response") from e

    @abstractmethod
    def available_methods(self, destination: dict) -> List[dict]:
        """Quotes for every service the carrier offers to ``destination``."""

    @abstractmethod
    def calculate(self, data: dict) -> dict:
        """Quote one service. ``data`` carries origin, destination, weight and the service type."""

    @abstractmethod
    def create_label(self, data: dict) -> dict:
        pass

    @abstractmethod
    def track(self, tracking_number: str) -> dict:
        pass

    @abstractmethod
    def process_webhook(self, payload: dict) -> Optional[dict]:
        """Normalized tracking event, or None when the payload is not one we act on."""

    @abstractmethod
    def map_status(self, carrier_status: str) -> str:
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        """HMAC-SHA256 of the raw body, hex encoded, keyed with the webhook secret."""
        signature = lower_headers(headers).get(self.signature_header)
        secret = self.settings.get("webhook_secret")
        if not signature or not secret:
            return False
        return hmac.compare_digest(hmac_sha256(secret, body), signature)

    def supports_destination(self, country: str) -> bool:
        return (country or "").upper() in self.countries

    def estimated_delivery(self, service_type: str) -> dict:
        base_days = {"express": 1, "standard": 3, "economy": 5}.get(service_type, 3)
        return {
            "min_days": base_days,
            "max_days": base_days + 2,
            "description": f"{base_days}-{base_days + 2} business days",
        }

    def coverage(self, location: Optional[dict] = None) -> dict:
        result = {
            "carrier": self.name,
            "countries": list(self.countries),
            "restrictions": {
                "max_weight": self.max_weight,
                "max_dimensions": dict(self.max_dimensions),
            },
        }
        if location and location.get("country"):
            result["covered"] = self.supports_destination(location["country"])
        return result

    def get_config(self) -> dict:
        return {
            "name": self.display_name,
            "enabled": bool(self.settings.get("enabled")),
            "configured": self.is_configured(),
            "services": dict(self.services),
            "max_weight": self.max_weight,
            "max_dimensions": dict(self.max_dimensions),
        }
