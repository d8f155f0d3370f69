from typing import Dict

import config
from .base import PaymentGateway, UnsupportedGatewayError
from .mercadopago_gateway import MercadoPagoGateway
from .paypal_gateway import PayPalGateway
from .payu_gateway import PayUGateway
from .stripe_gateway import StripeGateway
from .wompi_gateway import WompiGateway

GATEWAYS = {
    "stripe": StripeGateway,
    "paypal": PayPalGateway,
    "payu": PayUGateway,
    "wompi": WompiGateway,
    "mercadopago": MercadoPagoGateway,
}


class PaymentGatewayFactory:
    @staticmethod
    def create(name: str) -> PaymentGateway:
        gateway_class = GATEWAYS.get(name)
        if gateway_class is None:
            raise UnsupportedGatewayError(f"Unsupported payment gateway: {name}")
        return gateway_class()

    @staticmethod
    def available_gateways() -> Dict[str, dict]:
        gateways = {}
        for name, gateway_class in GATEWAYS.items():
            switched_on = bool(config.PAYMENT_GATEWAYS.get(name, {}).get("enabled"))
            gateways[name] = {
                "name": gateway_class.display_name,
                "class": gateway_class,
                # A switched-on gateway without credentials is not offered
                "enabled": switched_on and gateway_class().is_configured(),
            }
        return gateways

    @staticmethod
    def enabled_gateways() -> Dict[str, dict]:
        return {name: info for name, info in PaymentGatewayFactory.available_gateways().items() if info["enabled"]}

    @staticmethod
    def is_supported(name: str) -> bool:
        return name in GATEWAYS

    @staticmethod
    def is_enabled(name: str) -> bool:
        return bool(PaymentGatewayFactory.available_gateways().get(name, {}).get("enabled"))
