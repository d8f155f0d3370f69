"""Checkout arithmetic: subtotal, tax, shipping, coupon discount and total.

All amounts are ``Decimal`` rounded half-up to cents. The total is built from
the already rounded components, so ``total == subtotal + tax + shipping - discount``
holds exactly for whatever is persisted on the order.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

import config

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def calculate_subtotal(lines: Iterable) -> Decimal:
    """Sum of quantity x unit_price over cart lines."""
    return to_money(sum((Decimal(str(line.unit_price)) * line.quantity for line in lines), Decimal("0")))


def calculate_tax(subtotal: Decimal, rate: Decimal = None) -> Decimal:
    rate = config.TAX_RATE if rate is None else rate
    return to_money(subtotal * rate)


def total_weight(lines: Iterable) -> Decimal:
    weight = Decimal("0")
    for line in lines:
        product_weight = line.product.weight
        if product_weight is None:
            product_weight = config.DEFAULT_PRODUCT_WEIGHT
        weight += Decimal(str(product_weight)) * line.quantity
    return weight


def calculate_shipping(weight: Decimal) -> Decimal:
    """Flat fee plus a per-kg surcharge."""
    return to_money(config.SHIPPING_BASE_COST + weight * config.SHIPPING_COST_PER_KG)


def calculate_coupon_discount(coupon, subtotal: Decimal) -> Decimal:
    """Discount a coupon grants on ``subtotal``.

    Percentage coupons are capped at ``max_discount_amount`` when it is set;
    fixed coupons never exceed the subtotal. Orders under ``min_order_amount``
    get nothing.
    """
    if coupon is None:
        return Decimal("0.00")
    if coupon.min_order_amount is not None and subtotal < Decimal(str(coupon.min_order_amount)):
        return Decimal("0.00")

    value = Decimal(str(coupon.value))
    if coupon.type == "percentage":
        discount = subtotal * value / Decimal("100")
        if coupon.max_discount_amount is not None:
            discount = min(discount, Decimal(str(coupon.max_discount_amount)))
    else:
        discount = min(value, subtotal)
    return to_money(max(discount, Decimal("0")))


def calculate_totals(lines, coupon: Optional[object] = None) -> OrderTotals:
    lines = list(lines)
    subtotal = calculate_subtotal(lines)
    tax_amount = calculate_tax(subtotal)
    shipping_cost = calculate_shipping(total_weight(lines))
    discount_amount = calculate_coupon_discount(coupon, subtotal)
    total_amount = subtotal + tax_amount + shipping_cost - discount_amount
    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        shipping_cost=shipping_cost,
        discount_amount=discount_amount,
        total_amount=total_amount,
    )
