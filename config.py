import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required. Please set it in your .env file.")
DATABASE_ECHO = _env_bool("DATABASE_ECHO")

APP_NAME = os.getenv("APP_NAME", "Shop Checkout API")
APP_VERSION = "1.0.0"
APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
APP_DEBUG = _env_bool("APP_DEBUG")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",") if o.strip()]
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", "true")
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")

# Checkout pricing
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.10"))
SHIPPING_BASE_COST = Decimal(os.getenv("SHIPPING_BASE_COST", "5.99"))
SHIPPING_COST_PER_KG = Decimal(os.getenv("SHIPPING_COST_PER_KG", "0.50"))
DEFAULT_PRODUCT_WEIGHT = Decimal(os.getenv("DEFAULT_PRODUCT_WEIGHT", "1"))
CART_MAX_QUANTITY = int(os.getenv("CART_MAX_QUANTITY", "99"))

# Outbound gateway requests, in seconds
PAYMENT_TIMEOUT = int(os.getenv("PAYMENT_TIMEOUT", "30"))

PAYPAL_SANDBOX = _env_bool("PAYPAL_SANDBOX", "true")
PAYU_TEST_MODE = _env_bool("PAYU_TEST_MODE", "true")
WOMPI_TEST_MODE = _env_bool("WOMPI_TEST_MODE", "true")

PAYMENT_GATEWAYS = {
    "stripe": {
        "enabled": _env_bool("STRIPE_ENABLED"),
        "public_key": os.getenv("STRIPE_PUBLIC_KEY", ""),
        "secret_key": os.getenv("STRIPE_SECRET_KEY", ""),
        "webhook_secret": os.getenv("STRIPE_WEBHOOK_SECRET", ""),
        "base_url": "https://api.stripe.com/v1",
    },
    "paypal": {
        "enabled": _env_bool("PAYPAL_ENABLED"),
        "client_id": os.getenv("PAYPAL_CLIENT_ID", ""),
        "client_secret": os.getenv("PAYPAL_CLIENT_SECRET", ""),
        "webhook_id": os.getenv("PAYPAL_WEBHOOK_ID", ""),
        "base_url": "https://api-m.sandbox.paypal.com" if PAYPAL_SANDBOX else "https://api-m.paypal.com",
    },
    "payu": {
        "enabled": _env_bool("PAYU_ENABLED"),
        "merchant_id": os.getenv("PAYU_MERCHANT_ID", ""),
        "account_id": os.getenv("PAYU_ACCOUNT_ID", ""),
        "api_key": os.getenv("PAYU_API_KEY", ""),
        "api_login": os.getenv("PAYU_API_LOGIN", ""),
        "test_mode": PAYU_TEST_MODE,
        "base_url": "https://sandbox.api.payulatam.com" if PAYU_TEST_MODE else "https://api.payulatam.com",
    },
    "wompi": {
        "enabled": _env_bool("WOMPI_ENABLED"),
        "public_key": os.getenv("WOMPI_PUBLIC_KEY", ""),
        "private_key": os.getenv("WOMPI_PRIVATE_KEY", ""),
        "webhook_secret": os.getenv("WOMPI_WEBHOOK_SECRET", ""),
        "base_url": "https://sandbox.wompi.co" if WOMPI_TEST_MODE else "https://production.wompi.co",
    },
    "mercadopago": {
        "enabled": _env_bool("MERCADOPAGO_ENABLED"),
        "access_token": os.getenv("MERCADOPAGO_ACCESS_TOKEN", ""),
        "public_key": os.getenv("MERCADOPAGO_PUBLIC_KEY", ""),
        "webhook_secret": os.getenv("MERCADOPAGO_WEBHOOK_SECRET", ""),
        "base_url": "https://api.mercadopago.com",
    },
}

# Carrier integrations. Carrier quotes come back in the carrier's own currency.
SHIPPING_TIMEOUT = int(os.getenv("SHIPPING_TIMEOUT", "30"))
COORDINADORA_TEST_MODE = _env_bool("COORDINADORA_TEST_MODE", "true")

SHIPPING_ORIGIN = {
    "name": os.getenv("SHIPPING_ORIGIN_NAME", APP_NAME),
    "address": os.getenv("SHIPPING_ORIGIN_ADDRESS", ""),
    "city": os.getenv("SHIPPING_ORIGIN_CITY", "Medellin"),
    "state": os.getenv("SHIPPING_ORIGIN_STATE", "Antioquia"),
    "country": os.getenv("SHIPPING_ORIGIN_COUNTRY", "CO"),
    "phone": os.getenv("SHIPPING_ORIGIN_PHONE", ""),
    "email": os.getenv("SHIPPING_ORIGIN_EMAIL", ""),
}

SHIPPING_CARRIERS = {
    "coordinadora": {
        "enabled": _env_bool("COORDINADORA_ENABLED"),
        "api_key": os.getenv("COORDINADORA_API_KEY", ""),
        "username": os.getenv("COORDINADORA_USERNAME", ""),
        "password": os.getenv("COORDINADORA_PASSWORD", ""),
        "nit": os.getenv("COORDINADORA_NIT", ""),
        "account": os.getenv("COORDINADORA_ACCOUNT", ""),
        "sender_nit": os.getenv("COORDINADORA_SENDER_NIT", ""),
        "webhook_secret": os.getenv("COORDINADORA_WEBHOOK_SECRET", ""),
        "base_url": ("https://sandbox.coordinadora.com/agencia-virtual/ws" if COORDINADORA_TEST_MODE
                     else "https://api.coordinadora.com/agencia-virtual/ws"),
    },
}

# Informational rate table served to the storefront, amounts in COP
SHIPPING_ZONES = {
    "national": {
        "name": "National",
        "countries": ["CO"],
        "base_cost": 8000,
        "per_kg_cost": 2000,
        "free_shipping_threshold": 150000,
    },
    "international": {
        "name": "International",
        "countries": ["US", "CA", "MX", "PA", "EC", "PE", "VE", "BR", "AR", "CL"],
        "base_cost": 25000,
        "per_kg_cost": 8000,
        "free_shipping_threshold": 500000,
    },
    "express": {
        "name": "National Express",
        "countries": ["CO"],
        "cities": ["Bogota", "Medellin", "Cali", "Barranquilla", "Cartagena"],
        "base_cost": 15000,
        "per_kg_cost": 3000,
        "delivery_time": "24-48 hours",
    },
}
