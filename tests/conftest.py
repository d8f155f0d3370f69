import os
import tempfile

# Settings are read at import time, so the environment must be ready first
_TEST_DIR = tempfile.mkdtemp(prefix="shop-checkout-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_ENABLED"] = "true"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_PUBLIC_KEY"] = "pk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["PAYPAL_ENABLED"] = "false"
os.environ["COORDINADORA_ENABLED"] = "true"
os.environ["COORDINADORA_API_KEY"] = "coord_key"
os.environ["COORDINADORA_USERNAME"] = "shop"
os.environ["COORDINADORA_PASSWORD"] = "coord_pass"
os.environ["COORDINADORA_WEBHOOK_SECRET"] = "coord_whsec"

import json
from decimal import Decimal
from typing import Generator, Optional

import pytest
import requests
from fastapi.testclient import TestClient

from app import app as fastapi_app
from auth import create_access_token, get_password_hash
from database import Base, SessionLocal, engine
from models import Coupon, Product, User, UserAddress
from services.payment_gateway import PaymentGateway, PaymentGatewayFactory


# Mark tests by folder
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/") or nodeid.startswith("unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/") or nodeid.startswith("integration/"):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture(autouse=True)
def _reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(_reset_database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make_user(email: Optional[str] = None, is_admin: bool = False, is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            name=f"User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            hashed_password=get_password_hash("secret-password"),
            is_admin=is_admin,
            is_active=is_active
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(data={"sub": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture()
def make_product(db):
    counter = {"n": 0}

    def _make_product(price="50.00", stock: int = 10, weight="1.000", is_active: bool = True, name=None) -> Product:
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            sku=f"SKU-{counter['n']:04d}",
            price=Decimal(price),
            inventory_quantity=stock,
            weight=Decimal(weight) if weight is not None else None,
            is_active=is_active
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture()
def make_address(db):
    def _make_address(user: User, **overrides) -> UserAddress:
        fields = dict(
            user_id=user.id,
            first_name="Ada",
            last_name="Lovelace",
            address_line_1="12 Analytical St",
            city="London",
            postal_code="N1 9GU",
            country="GB",
            is_default=True
        )
        fields.update(overrides)
        address = UserAddress(**fields)
        db.add(address)
        db.commit()
        db.refresh(address)
        return address

    return _make_address


@pytest.fixture()
def make_coupon(db):
    def _make_coupon(code="SAVE10", type="percentage", value="10", **overrides) -> Coupon:
        coupon = Coupon(code=code, name=code, type=type, value=Decimal(value), **{"is_active": True, **overrides})
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make_coupon


@pytest.fixture()
def customer(make_user):
    return make_user(email="customer@example.com")


@pytest.fixture()
def admin(make_user):
    return make_user(email="admin@example.com", is_admin=True)


@pytest.fixture()
def checkout(client, customer, auth_headers, make_product, make_address):
    """Places an order for ``customer``: 2 x 50.00 at 1 kg each."""
    def _checkout(quantity: int = 2, product=None, **order_fields):
        product = product or make_product()
        address = make_address(customer)
        headers = auth_headers(customer)
        res = client.post("/api/cart/items", json={"product_id": product.id, "quantity": quantity}, headers=headers)
        assert res.status_code == 201, res.json()
        body = {"shipping_address_id": address.id, "payment_method": "stripe"}
        body.update(order_fields)
        res = client.post("/api/orders", json=body, headers=headers)
        assert res.status_code == 201, res.json()
        return res.json()["data"]

    return _checkout


class FakeGateway(PaymentGateway):
    """In-memory gateway; records calls and answers with the configured statuses."""

    name = "stripe"
    display_name = "Fake"
    currencies = ["USD"]

    def __init__(self):
        super().__init__({"enabled": True, "base_url": "https://gateway.test"})
        self.calls = []
        self.intent_status = "pending"
        self.confirm_status = "completed"
        self.signature_ok = True
        self.webhook_event = None
        self.fail_with = None
        self._counter = 0

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with is not None:
            raise self.fail_with

    def create_payment_intent(self, data):
        self._record("create_payment_intent", data)
        self._counter += 1
        return {
            "payment_id": f"fake_{self._counter}",
            "client_secret": f"fake_{self._counter}_secret",
            "status": self.intent_status,
            "gateway_data": {"id": f"fake_{self._counter}"},
        }

    def confirm_payment(self, gateway_payment_id, data=None):
        self._record("confirm_payment", gateway_payment_id, data)
        return {"payment_id": gateway_payment_id, "status": self.confirm_status, "gateway_data": {"id": gateway_payment_id}}

    def get_payment_status(self, gateway_payment_id):
        self._record("get_payment_status", gateway_payment_id)
        return {"payment_id": gateway_payment_id, "status": self.confirm_status, "gateway_data": {}}

    def refund_payment(self, gateway_payment_id, amount=None, reason=None):
        self._record("refund_payment", gateway_payment_id, amount, reason)
        return {"refund_id": f"re_{len(self.calls)}", "status": "succeeded", "amount": amount, "gateway_data": {}}

    def verify_webhook_signature(self, headers, body, payload):
        return self.signature_ok

    def process_webhook(self, payload):
        self._record("process_webhook", payload)
        return self.webhook_event

    def map_status(self, provider_status):
        return provider_status

    def is_configured(self):
        return True


@pytest.fixture()
def fake_gateway(monkeypatch):
    gateway = FakeGateway()
    monkeypatch.setattr(PaymentGatewayFactory, "create", staticmethod(lambda name: gateway))
    return gateway


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload


@pytest.fixture()
def http(monkeypatch):
    """Captures outbound requests and answers from a queue.

    Queue entries are ``(status_code, payload)`` pairs or exceptions to raise.
    """
    calls = []
    responses = []

    def fake_request(method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return FakeResponse(*response)

    monkeypatch.setattr(requests, "request", fake_request)
    return calls, responses
