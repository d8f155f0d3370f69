import re

import pytest

from models import Order
from services.order_service import VALID_TRANSITIONS, OrderService, is_valid_transition
from services.exceptions import PaymentProcessingError


@pytest.mark.parametrize("current,new", [
    ("pending", "processing"),
    ("pending", "cancelled"),
    ("processing", "shipped"),
    ("processing", "cancelled"),
    ("shipped", "delivered"),
    ("delivered", "refunded"),
])
def test_allowed_transitions(current, new):
    assert is_valid_transition(current, new)


@pytest.mark.parametrize("current,new", [
    ("pending", "shipped"),
    ("pending", "delivered"),
    ("shipped", "cancelled"),
    ("delivered", "cancelled"),
    ("processing", "pending"),
    ("pending", "pending"),
])
def test_rejected_transitions(current, new):
    assert not is_valid_transition(current, new)


def test_terminal_statuses_have_no_way_out():
    for status in ("cancelled", "refunded"):
        assert VALID_TRANSITIONS[status] == ()
        assert not any(is_valid_transition(status, other) for other in VALID_TRANSITIONS)


def test_unknown_status_is_rejected():
    assert not is_valid_transition("lost", "pending")


def test_order_number_format(db):
    number = OrderService.generate_order_number(db)
    assert re.fullmatch(r"ORD-\d{4}-[A-Z0-9]{8}", number)


def test_order_number_gives_up_after_repeated_collisions(db, monkeypatch):
    import services.order_service as order_service

    monkeypatch.setattr(order_service.secrets, "choice", lambda alphabet: "A")
    taken = OrderService.generate_order_number(db)
    db.add(Order(
        order_number=taken,
        shipping_address={},
        billing_address={},
        subtotal=0,
        total_amount=0
    ))
    db.commit()

    with pytest.raises(PaymentProcessingError):
        OrderService.generate_order_number(db)
