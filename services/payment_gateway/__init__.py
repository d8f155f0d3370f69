from .base import PaymentGateway, GatewayError, UnsupportedGatewayError, PAYMENT_STATUSES
from .stripe_gateway import StripeGateway
from .paypal_gateway import PayPalGateway
from .payu_gateway import PayUGateway
from .wompi_gateway import WompiGateway
from .mercadopago_gateway import MercadoPagoGateway
from .factory import PaymentGatewayFactory

__all__ = [
    "PaymentGateway",
    "GatewayError",
    "UnsupportedGatewayError",
    "PAYMENT_STATUSES",
    "StripeGateway",
    "PayPalGateway",
    "PayUGateway",
    "WompiGateway",
    "MercadoPagoGateway",
    "PaymentGatewayFactory"
]
