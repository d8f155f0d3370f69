import re
from datetime import datetime, timedelta

from models import CartItem, CouponUsage, Order, Product


def test_checkout_creates_order(client, db, customer, auth_headers, make_product, checkout):
    product = make_product(price="50.00", stock=10, weight="1.000")

    order = checkout(quantity=2, product=product)

    assert re.fullmatch(r"ORD-\d{4}-[A-Z0-9]{8}", order["order_number"])
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["subtotal"] == 100.0
    assert order["tax_amount"] == 10.0
    assert order["shipping_cost"] == 6.99
    assert order["discount_amount"] == 0.0
    assert order["total_amount"] == 116.99
    assert order["shipping_address"]["city"] == "London"
    assert order["billing_address"] == order["shipping_address"]
    assert len(order["order_items"]) == 1
    assert order["order_items"][0]["product_sku"] == product.sku

    db.refresh(product)
    assert product.inventory_quantity == 8
    assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 0


def test_order_keeps_product_snapshot(db, make_product, checkout):
    product = make_product(price="50.00")
    order = checkout(product=product)

    product.price = 75
    product.name = "Renamed"
    db.commit()

    stored = db.query(Order).filter(Order.id == order["id"]).one()
    item = stored.order_items[0]
    assert item.product_name != "Renamed"
    assert float(item.unit_price) == 50.0
    assert item.product_snapshot["sku"] == product.sku


def test_empty_cart(client, customer, auth_headers, make_address):
    address = make_address(customer)

    res = client.post(
        "/api/orders",
        json={"shipping_address_id": address.id, "payment_method": "stripe"},
        headers=auth_headers(customer)
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Cart is empty"


def test_stock_dropped_after_adding_to_cart(client, db, customer, auth_headers, make_product, make_address):
    product = make_product(stock=2)
    address = make_address(customer)
    headers = auth_headers(customer)
    client.post("/api/cart/items", json={"product_id": product.id, "quantity": 2}, headers=headers)

    product.inventory_quantity = 1
    db.commit()

    res = client.post(
        "/api/orders",
        json={"shipping_address_id": address.id, "payment_method": "stripe"},
        headers=headers
    )

    assert res.status_code == 400
    db.expire_all()
    assert db.query(Order).count() == 0
    assert db.get(Product, product.id).inventory_quantity == 1
    assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 1


def test_address_of_another_user(client, customer, make_user, auth_headers, make_product, make_address):
    other_address = make_address(make_user())
    headers = auth_headers(customer)
    client.post("/api/cart/items", json={"product_id": make_product().id, "quantity": 1}, headers=headers)

    res = client.post(
        "/api/orders",
        json={"shipping_address_id": other_address.id, "payment_method": "stripe"},
        headers=headers
    )

    assert res.status_code == 404


def test_unknown_payment_method(client, customer, auth_headers, make_address):
    res = client.post(
        "/api/orders",
        json={"shipping_address_id": make_address(customer).id, "payment_method": "cash"},
        headers=auth_headers(customer)
    )

    assert res.status_code == 422
    assert "payment_method" in res.json()["errors"]


def test_unknown_coupon(client, customer, auth_headers, make_product, make_address):
    headers = auth_headers(customer)
    client.post("/api/cart/items", json={"product_id": make_product().id, "quantity": 1}, headers=headers)

    res = client.post(
        "/api/orders",
        json={"shipping_address_id": make_address(customer).id, "payment_method": "stripe", "coupon_code": "NOPE"},
        headers=headers
    )

    assert res.status_code == 422
    assert "coupon_code" in res.json()["errors"]


def test_coupon_discount_and_usage(db, make_coupon, checkout):
    coupon = make_coupon(code="SAVE10", value="10")

    order = checkout(coupon_code="save10")

    assert order["discount_amount"] == 10.0
    assert order["total_amount"] == 106.99
    assert order["coupon_code"] == "SAVE10"
    db.refresh(coupon)
    assert coupon.used_count == 1
    assert db.query(CouponUsage).filter(CouponUsage.order_id == order["id"]).count() == 1


def test_expired_coupon_is_ignored(db, make_coupon, checkout):
    make_coupon(code="OLD", expires_at=datetime.utcnow() - timedelta(days=1))

    order = checkout(coupon_code="OLD")

    assert order["discount_amount"] == 0.0
    assert order["coupon_code"] is None
    assert db.query(CouponUsage).count() == 0


def test_list_and_get_orders(client, customer, make_user, auth_headers, checkout):
    order = checkout()
    headers = auth_headers(customer)

    listed = client.get("/api/orders", headers=headers).json()["data"]
    assert [o["id"] for o in listed] == [order["id"]]
    assert client.get("/api/orders?status=shipped", headers=headers).json()["data"] == []

    assert client.get(f"/api/orders/{order['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/orders/{order['id']}", headers=auth_headers(make_user())).status_code == 404


def test_cancel_restores_stock(client, db, customer, auth_headers, make_product, checkout):
    product = make_product(stock=10)
    order = checkout(quantity=3, product=product)

    res = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(customer))

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "cancelled"
    assert data["cancelled_at"] is not None
    db.refresh(product)
    assert product.inventory_quantity == 10


def test_cancel_only_pending_orders(client, db, customer, auth_headers, checkout):
    order = checkout()
    stored = db.get(Order, order["id"])
    stored.status = "processing"
    db.commit()

    res = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(customer))

    assert res.status_code == 400


def test_tracking(client, customer, auth_headers, checkout):
    order = checkout()

    res = client.get(f"/api/orders/{order['id']}/tracking", headers=auth_headers(customer))

    data = res.json()["data"]
    assert data["order_number"] == order["order_number"]
    assert [step["status"] for step in data["tracking_steps"]] == ["pending", "processing", "shipped", "delivered"]
    assert [step["completed"] for step in data["tracking_steps"]] == [True, False, False, False]


def test_orders_require_login(client):
    assert client.get("/api/orders").status_code == 401


def test_variant_lines_sharing_stock_roll_back(client, db, customer, auth_headers, make_product, make_address):
    product = make_product(stock=5)
    address = make_address(customer)
    headers = auth_headers(customer)
    for size in ("S", "M"):
        res = client.post(
            "/api/cart/items",
            json={"product_id": product.id, "quantity": 3, "variant_options": {"size": size}},
            headers=headers
        )
        assert res.status_code == 201

    res = client.post(
        "/api/orders",
        json={"shipping_address_id": address.id, "payment_method": "stripe"},
        headers=headers
    )

    assert res.status_code == 400
    assert res.json()["success"] is False
    db.refresh(product)
    assert product.inventory_quantity == 5
    assert db.query(Order).count() == 0
    assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 2
