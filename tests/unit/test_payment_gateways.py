import hashlib
import importlib
import time
from decimal import Decimal

import pytest
import requests

import config
from services.payment_gateway import (
    PAYMENT_STATUSES,
    GatewayError,
    MercadoPagoGateway,
    PaymentGatewayFactory,
    PayPalGateway,
    PayUGateway,
    StripeGateway,
    UnsupportedGatewayError,
    WompiGateway,
)
from services.payment_gateway.base import hmac_sha256, parse_signature_header, to_cents
from services.payment_gateway.mercadopago_gateway import signature_manifest
from services.payment_gateway.payu_gateway import format_signature_value, generate_signature


def _stripe(**overrides):
    settings = {
        "enabled": True,
        "public_key": "pk_test",
        "secret_key": "sk_test",
        "webhook_secret": "whsec_unit",
        "base_url": "https://api.stripe.test/v1",
    }
    settings.update(overrides)
    return StripeGateway(settings)


def test_helpers():
    assert to_cents(Decimal("116.99")) == 11699
    assert to_cents("0.10") == 10
    assert parse_signature_header("t=123, v1=abc,v1=def") == {"t": "123", "v1": "abc"}


def test_stripe_create_intent_sends_cents_and_timeout(http):
    calls, responses = http
    responses.append((200, {"id": "pi_1", "client_secret": "pi_1_secret", "status": "requires_payment_method"}))

    result = _stripe().create_payment_intent({
        "amount": Decimal("116.99"),
        "currency": "USD",
        "order_id": 7,
        "payment_id": 3,
    })

    assert result["payment_id"] == "pi_1"
    assert result["client_secret"] == "pi_1_secret"
    assert result["status"] == "pending"
    call = calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.stripe.test/v1/payment_intents"
    assert call["timeout"] == 30
    assert call["data"]["amount"] == 11699
    assert call["data"]["currency"] == "usd"
    assert call["data"]["metadata[order_id]"] == 7
    assert call["headers"]["Authorization"] == "Bearer sk_test"


def test_stripe_confirm_only_forwards_known_params(http):
    calls, responses = http
    responses.append((200, {"id": "pi_1", "status": "succeeded"}))

    result = _stripe().confirm_payment("pi_1", {"reference": "PAY_X", "payment_method": "pm_card_visa"})

    assert result["status"] == "completed"
    assert calls[0]["data"] == {"payment_method": "pm_card_visa"}


def test_non_2xx_raises_gateway_error(http):
    _, responses = http
    responses.append((402, {"error": {"message": "Your card was declined."}}))

    with pytest.raises(GatewayError):
        _stripe().get_payment_status("pi_1")


def test_network_failure_raises_gateway_error(http):
    _, responses = http
    responses.append(requests.ConnectionError("connection refused"))

    with pytest.raises(GatewayError):
        _stripe().get_payment_status("pi_1")


@pytest.mark.parametrize("provider_status,expected", [
    ("requires_payment_method", "pending"),
    ("processing", "pending"),
    ("succeeded", "completed"),
    ("canceled", "failed"),
    ("something_new", "failed"),
])
def test_stripe_status_map(provider_status, expected):
    assert _stripe().map_status(provider_status) == expected


def test_stripe_signature():
    body = b'{"type": "payment_intent.succeeded"}'
    now = str(int(time.time()))
    signature = hmac_sha256("whsec_unit", f"{now}.".encode("utf-8") + body)
    gateway = _stripe()

    assert gateway.verify_webhook_signature({"Stripe-Signature": f"t={now},v1={signature}"}, body, {})
    assert not gateway.verify_webhook_signature({"Stripe-Signature": f"t={int(now) + 1},v1={signature}"}, body, {})
    assert not gateway.verify_webhook_signature({"Stripe-Signature": f"t=soon,v1={signature}"}, body, {})
    assert not gateway.verify_webhook_signature({}, body, {})
    assert not _stripe(webhook_secret="").verify_webhook_signature(
        {"Stripe-Signature": f"t={now},v1={signature}"}, body, {}
    )


def test_stripe_rejects_replayed_event():
    body = b'{"type": "payment_intent.succeeded"}'
    month_ago = str(int(time.time()) - 30 * 24 * 3600)
    signature = hmac_sha256("whsec_unit", f"{month_ago}.".encode("utf-8") + body)

    assert not _stripe().verify_webhook_signature({"Stripe-Signature": f"t={month_ago},v1={signature}"}, body, {})


def test_stripe_partial_refund_sends_amount(http):
    calls, responses = http
    responses.append((200, {"id": "re_1", "status": "succeeded", "amount": 1}))

    result = _stripe().refund_payment("pi_1", Decimal("0.01"), "Damaged")

    assert calls[0]["data"]["amount"] == 1
    assert calls[0]["data"]["metadata[reason]"] == "Damaged"
    assert result["amount"] == Decimal("0.01")


def test_stripe_full_refund_omits_amount(http):
    calls, responses = http
    responses.append((200, {"id": "re_2", "status": "succeeded", "amount": 11699}))

    _stripe().refund_payment("pi_1")

    assert "amount" not in calls[0]["data"]


def test_two_decimal_currencies_only():
    assert "JPY" not in StripeGateway({}).supported_currencies
    assert "JPY" not in PayPalGateway({}).supported_currencies


def test_stripe_ignores_other_events():
    gateway = _stripe()
    assert gateway.process_webhook({"type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}) is None

    event = gateway.process_webhook({
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_1", "status": "succeeded"}},
    })
    assert event["payment_id"] == "pi_1"
    assert event["status"] == "completed"


def test_paypal_webhook_events():
    gateway = PayPalGateway({"enabled": True, "client_id": "id", "client_secret": "secret", "base_url": ""})

    assert gateway.process_webhook({"event_type": "BILLING.SUBSCRIPTION.CREATED", "resource": {"id": "x"}}) is None

    capture = gateway.process_webhook({
        "event_type": "PAYMENT.CAPTURE.COMPLETED",
        "resource": {
            "id": "CAP-1",
            "status": "COMPLETED",
            "supplementary_data": {"related_ids": {"order_id": "ORDER-1"}},
        },
    })
    assert capture["payment_id"] == "ORDER-1"
    assert capture["status"] == "completed"


def test_paypal_signature_requires_transmission_headers():
    gateway = PayPalGateway({"enabled": True, "client_id": "id", "client_secret": "secret", "base_url": ""})
    headers = {
        "PAYPAL-TRANSMISSION-ID": "t-1",
        "PAYPAL-TRANSMISSION-TIME": "2026-01-01T00:00:00Z",
        "PAYPAL-TRANSMISSION-SIG": "sig",
        "PAYPAL-CERT-URL": "https://api.paypal.com/cert",
        "PAYPAL-AUTH-ALGO": "SHA256withRSA",
    }

    assert gateway.verify_webhook_signature(headers, b"{}", {})
    del headers["PAYPAL-TRANSMISSION-SIG"]
    assert not gateway.verify_webhook_signature(headers, b"{}", {})


def test_paypal_signature_is_verified_remotely_with_webhook_id(http):
    calls, responses = http
    responses.append((200, {"access_token": "A21"}))
    responses.append((200, {"verification_status": "FAILURE"}))
    gateway = PayPalGateway({
        "enabled": True,
        "client_id": "id",
        "client_secret": "secret",
        "webhook_id": "WH-1",
        "base_url": "https://paypal.test",
    })
    headers = {name: "value" for name in (
        "paypal-transmission-id", "paypal-transmission-time", "paypal-transmission-sig",
        "paypal-cert-url", "paypal-auth-algo",
    )}

    assert not gateway.verify_webhook_signature(headers, b'{"id": "WH-EVT"}', {"id": "WH-EVT"})
    assert calls[1]["url"] == "https://paypal.test/v1/notifications/verify-webhook-signature"
    assert calls[1]["json"]["webhook_id"] == "WH-1"


@pytest.mark.parametrize("value,expected", [
    ("150.00", "150.0"),
    ("150.25", "150.25"),
    (Decimal("99.9"), "99.9"),
])
def test_payu_signature_value_format(value, expected):
    assert format_signature_value(value) == expected


def test_payu_signature():
    expected = hashlib.md5(b"key~508029~PAY_1~150.0~COP").hexdigest()
    assert generate_signature("key", "508029", "PAY_1", "150.00", "COP") == expected


def test_payu_confirmation_signature():
    gateway = PayUGateway({"enabled": True, "api_key": "key", "merchant_id": "508029", "base_url": ""})
    payload = {
        "reference_sale": "PAY_1",
        "value": "150.00",
        "currency": "COP",
        "state_pol": "4",
        "transaction_id": "tx-1",
    }
    payload["sign"] = generate_signature("key", "508029", "PAY_1", "150.00", "COP", "4")

    assert gateway.verify_webhook_signature({}, b"", payload)
    assert not gateway.verify_webhook_signature({}, b"", dict(payload, state_pol="6"))

    event = gateway.process_webhook(payload)
    assert event["reference"] == "PAY_1"
    assert event["status"] == "completed"


def test_payu_command_failure(http):
    _, responses = http
    responses.append((200, {"code": "ERROR", "error": "Invalid credentials"}))
    gateway = PayUGateway({"enabled": True, "api_key": "key", "base_url": "https://payu.test"})

    with pytest.raises(GatewayError):
        gateway.confirm_payment("tx-1", {"reference": "PAY_1"})


def test_wompi_signature_and_events():
    gateway = WompiGateway({"enabled": True, "webhook_secret": "wompi_secret", "base_url": ""})
    body = b'{"event": "transaction.updated"}'
    signature = hmac_sha256("wompi_secret", body)

    assert gateway.verify_webhook_signature({"X-Wompi-Signature": signature}, body, {})
    assert not gateway.verify_webhook_signature({"X-Wompi-Signature": "bad"}, body, {})
    assert gateway.process_webhook({"event": "nequi_token.updated", "data": {"id": 1}}) is None

    event = gateway.process_webhook({
        "event": "transaction.updated",
        "data": {"transaction": {"id": "12-abc", "status": "DECLINED"}},
    })
    assert event["status"] == "failed"


def test_wompi_refund_is_manual():
    with pytest.raises(GatewayError):
        WompiGateway({"enabled": True, "base_url": ""}).refund_payment("12-abc")


def test_wompi_only_supports_cop():
    assert WompiGateway({}).supported_currencies == ["COP"]


def test_mercadopago_signature():
    gateway = MercadoPagoGateway({"enabled": True, "webhook_secret": "mp_secret", "base_url": ""})
    manifest = signature_manifest("123456", "req-1", "1700000000")
    assert manifest == "id:123456;request-id:req-1;ts:1700000000;"
    signature = hmac_sha256("mp_secret", manifest)
    headers = {"x-signature": f"ts=1700000000,v1={signature}", "x-request-id": "req-1"}
    payload = {"type": "payment", "data": {"id": "123456"}}

    assert gateway.verify_webhook_signature(headers, b"", payload)
    assert not gateway.verify_webhook_signature(headers, b"", {"type": "payment", "data": {"id": "999"}})
    assert not gateway.verify_webhook_signature({"x-signature": headers["x-signature"]}, b"", payload)


def test_mercadopago_webhook_fetches_status(http):
    calls, responses = http
    responses.append((200, {"id": 123456, "status": "approved"}))
    gateway = MercadoPagoGateway({"enabled": True, "access_token": "TEST-token", "base_url": "https://mp.test"})

    assert gateway.process_webhook({"type": "merchant_order", "data": {"id": "1"}}) is None
    event = gateway.process_webhook({"type": "payment", "data": {"id": "123456"}})

    assert event["payment_id"] == "123456"
    assert event["status"] == "completed"
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"] == "https://mp.test/v1/payments/123456"


def test_mercadopago_chargeback_counts_as_refund():
    assert MercadoPagoGateway({}).map_status("charged_back") == "refunded"


def test_factory():
    assert isinstance(PaymentGatewayFactory.create("stripe"), StripeGateway)
    assert PaymentGatewayFactory.is_supported("wompi")
    assert PaymentGatewayFactory.is_enabled("stripe")
    assert not PaymentGatewayFactory.is_enabled("paypal")
    assert "stripe" in PaymentGatewayFactory.enabled_gateways()

    with pytest.raises(UnsupportedGatewayError):
        PaymentGatewayFactory.create("bitcoin")


def test_public_config_hides_secrets():
    public = _stripe().get_config()
    assert public["public_key"] == "pk_test"
    assert "sk_test" not in public.values()


def test_factory_skips_switched_on_gateway_without_credentials(monkeypatch):
    monkeypatch.setitem(config.PAYMENT_GATEWAYS, "paypal", {"enabled": True, "client_id": "", "client_secret": ""})
    assert not PaymentGatewayFactory.is_enabled("paypal")
    assert "paypal" not in PaymentGatewayFactory.enabled_gateways()

    monkeypatch.setitem(config.PAYMENT_GATEWAYS, "paypal", {"enabled": True, "client_id": "id", "client_secret": "s"})
    assert PaymentGatewayFactory.is_enabled("paypal")


@pytest.mark.parametrize("gateway_class", [StripeGateway, PayPalGateway, PayUGateway, WompiGateway, MercadoPagoGateway])
def test_status_maps_use_known_statuses(gateway_class):
    module = importlib.import_module(gateway_class.__module__)
    assert set(module.STATUS_MAP.values()) <= set(PAYMENT_STATUSES)
