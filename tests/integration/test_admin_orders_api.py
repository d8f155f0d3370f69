from models import Order, Payment


def _set_status(client, headers, order_id, status, **extra):
    return client.put(f"/api/admin/orders/{order_id}/status", json={"status": status, **extra}, headers=headers)


def _paid_order(client, customer, auth_headers, checkout):
    order = checkout()
    headers = auth_headers(customer)
    payment_id = client.post(
        "/api/payments/create-intent",
        json={"order_id": order["id"], "payment_method": "stripe"},
        headers=headers
    ).json()["data"]["payment_id"]
    client.post(f"/api/payments/{payment_id}/confirm", json={}, headers=headers)
    return order, payment_id


def test_admin_only(client, customer, auth_headers, checkout):
    order = checkout()
    headers = auth_headers(customer)

    assert client.get("/api/admin/orders", headers=headers).status_code == 403
    assert _set_status(client, headers, order["id"], "processing").status_code == 403
    assert client.get("/api/admin/orders").status_code == 401


def test_list_and_filter_orders(client, admin, auth_headers, checkout):
    order = checkout()
    headers = auth_headers(admin)

    assert [o["id"] for o in client.get("/api/admin/orders", headers=headers).json()["data"]] == [order["id"]]
    assert client.get("/api/admin/orders?status=shipped", headers=headers).json()["data"] == []
    assert client.get("/api/admin/orders?payment_status=pending", headers=headers).json()["data"] != []

    suffix = order["order_number"][-8:]
    found = client.get(f"/api/admin/orders?search=%23{suffix}", headers=headers).json()["data"]
    assert [o["order_number"] for o in found] == [order["order_number"]]


def test_bad_date_filter(client, admin, auth_headers):
    res = client.get("/api/admin/orders?date=18-10-2026", headers=auth_headers(admin))

    assert res.status_code == 422
    assert "date" in res.json()["errors"]


def test_full_lifecycle(client, admin, auth_headers, checkout):
    order = checkout()
    headers = auth_headers(admin)

    res = _set_status(client, headers, order["id"], "processing")
    assert res.status_code == 200
    assert res.json()["data"]["processing_at"] is not None

    res = _set_status(client, headers, order["id"], "shipped", tracking_number="1Z999AA10123456784")
    data = res.json()["data"]
    assert data["shipped_at"] is not None
    assert data["tracking_number"] == "1Z999AA10123456784"

    res = _set_status(client, headers, order["id"], "delivered", notes="Left at the door")
    data = res.json()["data"]
    assert data["status"] == "delivered"
    assert data["delivered_at"] is not None
    assert [h["status"] for h in data["status_history"]] == ["pending", "processing", "shipped", "delivered"]
    assert data["status_history"][-1]["notes"] == "Left at the door"
    assert data["status_history"][-1]["changed_by"] == admin.id


def test_invalid_transition_leaves_order_alone(client, db, admin, auth_headers, checkout):
    order = checkout()

    res = _set_status(client, auth_headers(admin), order["id"], "delivered")

    assert res.status_code == 422
    body = res.json()
    assert body["message"] == "Invalid status transition"
    assert "status" in body["errors"]
    stored = db.get(Order, order["id"])
    assert stored.status == "pending"
    assert stored.delivered_at is None


def test_unknown_status_value(client, admin, auth_headers, checkout):
    order = checkout()

    res = _set_status(client, auth_headers(admin), order["id"], "lost")

    assert res.status_code == 422


def test_unknown_order(client, admin, auth_headers):
    assert _set_status(client, auth_headers(admin), 999, "processing").status_code == 404


def test_admin_cancel_restores_stock(client, db, admin, auth_headers, make_product, checkout):
    product = make_product(stock=5)
    order = checkout(quantity=2, product=product)
    headers = auth_headers(admin)
    _set_status(client, headers, order["id"], "processing")

    res = _set_status(client, headers, order["id"], "cancelled", notes="Customer called")

    assert res.status_code == 200
    db.refresh(product)
    assert product.inventory_quantity == 5
    stored = db.get(Order, order["id"])
    assert stored.cancellation_reason == "Customer called"

    assert _set_status(client, headers, order["id"], "processing").status_code == 422


def test_delivered_paid_order_can_be_refunded(client, admin, customer, auth_headers, checkout, fake_gateway):
    order, _ = _paid_order(client, customer, auth_headers, checkout)
    headers = auth_headers(admin)
    for status in ("shipped", "delivered"):
        _set_status(client, headers, order["id"], status)

    data = _set_status(client, headers, order["id"], "refunded").json()["data"]

    assert data["status"] == "refunded"
    assert data["payment_status"] == "refunded"
    assert data["refunded_at"] is not None


def test_full_refund(client, db, admin, customer, auth_headers, checkout, fake_gateway):
    order, payment_id = _paid_order(client, customer, auth_headers, checkout)

    res = client.post(f"/api/admin/payments/{payment_id}/refund", json={"reason": "Damaged"},
                      headers=auth_headers(admin))

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "refunded"
    assert data["refunded_amount"] == 116.99
    assert data["order_payment_status"] == "refunded"
    assert fake_gateway.calls[-1] == ("refund_payment", "fake_1", None, "Damaged")


def test_partial_refunds(client, db, admin, customer, auth_headers, checkout, fake_gateway):
    order, payment_id = _paid_order(client, customer, auth_headers, checkout)
    headers = auth_headers(admin)

    res = client.post(f"/api/admin/payments/{payment_id}/refund", json={"amount": 16.99}, headers=headers)
    data = res.json()["data"]
    assert data["status"] == "completed"
    assert data["total_refunded"] == 16.99
    assert data["order_payment_status"] == "partially_paid"

    res = client.post(f"/api/admin/payments/{payment_id}/refund", json={"amount": 200}, headers=headers)
    assert res.status_code == 422

    res = client.post(f"/api/admin/payments/{payment_id}/refund", json={"amount": 100}, headers=headers)
    data = res.json()["data"]
    assert data["status"] == "refunded"
    assert data["total_refunded"] == 116.99

    refunds = db.get(Payment, payment_id).gateway_data["refunds"]
    assert [entry["amount"] for entry in refunds] == ["16.99", "100.00"]


def test_refund_requires_completed_payment(client, admin, customer, auth_headers, checkout, fake_gateway):
    order = checkout()
    payment_id = client.post(
        "/api/payments/create-intent",
        json={"order_id": order["id"], "payment_method": "stripe"},
        headers=auth_headers(customer)
    ).json()["data"]["payment_id"]

    res = client.post(f"/api/admin/payments/{payment_id}/refund", json={}, headers=auth_headers(admin))

    assert res.status_code == 400
    assert res.json()["message"] == "Only completed payments can be refunded"


def test_refund_rounding_to_zero_is_rejected(client, db, admin, customer, auth_headers, checkout, fake_gateway):
    order, payment_id = _paid_order(client, customer, auth_headers, checkout)

    res = client.post(f"/api/admin/payments/{payment_id}/refund", json={"amount": 0.004},
                      headers=auth_headers(admin))

    assert res.status_code == 422
    assert "amount" in res.json()["errors"]
    assert not any(call[0] == "refund_payment" for call in fake_gateway.calls)
    db.expire_all()
    assert db.get(Payment, payment_id).status == "completed"
    assert db.get(Order, order["id"]).payment_status == "paid"
