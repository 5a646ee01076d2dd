from decimal import Decimal

from tienda.models.coupon import Coupon, UserCoupon
from tienda.models.order import GuestEmail
from tienda.services.email import get_email_service
from tienda.services.side_effects import SideEffects, run_guarded
from tienda.main import app


def _order(**over):
    body = {
        "paypal_order_id": "PAY-001",
        "customer_name": "Ana López",
        "customer_email": "ana@correo.mx",
        "shipping_address": {"calle": "Hidalgo 12", "colonia": "Centro", "ciudad": "Guadalajara", "cp": "44100"},
        "items": [{"product_id": "anillo-1", "product_name": "Anillo", "quantity": 1, "price": 1000,
                   "selected_size": "7"}],
        "total_amount": 1000,
    }
    body.update(over)
    return body


def _post(client, headers, json):
    r = client.post("/api/orders/create", json=json, headers=headers)
    return r.status_code, r.json()


class RecordingMailer:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send_order_confirmation(self, order):
        self.sent.append(("confirmation", order["paypal_order_id"]))
        if self.fail:
            raise RuntimeError("resend caído")

    def send_shipping_notification(self, order):
        self.sent.append(("shipping", order["tracking_number"]))


def _mailer(fail=False):
    m = RecordingMailer(fail)
    app.dependency_overrides[get_email_service] = lambda: m
    return m


def test_create_then_duplicate_capture(client, service_headers):
    mailer = _mailer()
    st, js = _post(client, service_headers, _order())
    assert st == 201
    assert js["shipping_status"] == "paid" and js["status"] == "completed"
    assert js["total_amount"] == 1000.0

    st, again = _post(client, service_headers, _order(customer_name="Otra"))
    assert st == 200
    assert again["id"] == js["id"] and again["customer_name"] == "Ana López"
    assert mailer.sent == [("confirmation", "PAY-001")]


def test_totals_must_match_discounts(client, service_headers):
    st, js = _post(client, service_headers, _order(original_total=1000, coupon_discount=100, total_amount=950))
    assert st == 400
    assert js["details"] == {"expected": 900.0, "total_amount": 950.0}


def test_coupon_is_redeemed_with_order(client, db, service_headers, as_user):
    db.add(Coupon(id="verano10", code="VERANO10", discount_type="percentage", discount_value=Decimal("10"),
                  min_purchase_amount=Decimal("500"), current_uses=0, is_active=True))
    db.commit()
    _mailer()
    st, js = _post(client, service_headers, _order(user_id="user-1", coupon_code="verano10", original_total=1000,
                                                  coupon_discount=100, total_amount=900))
    assert st == 201

    db.expire_all()
    assert db.get(Coupon, "verano10").current_uses == 1
    assert db.query(UserCoupon).one().order_id == js["id"]

    r = client.post("/api/coupons/validate", json={"code": "VERANO10", "cartTotal": 1000})
    assert r.json()["message"] == "Ya has usado este cupón anteriormente"

    orders = client.get("/api/orders").json()
    assert [o["id"] for o in orders] == [js["id"]]


def test_guest_emails_are_counted(client, db, service_headers):
    _mailer()
    _post(client, service_headers, _order(is_guest=True))
    _post(client, service_headers, _order(paypal_order_id="PAY-002", is_guest=True))
    row = db.get(GuestEmail, "ana@correo.mx")
    assert row.total_orders == 2
    assert row.first_order_id == "PAY-001"


def test_failed_email_does_not_fail_order(client, service_headers):
    mailer = _mailer(fail=True)
    st, _ = _post(client, service_headers, _order())
    assert st == 201
    # un intento más los reintentos configurados
    assert len(mailer.sent) == 3


def test_shipping_progress(client, service_headers, as_admin):
    mailer = _mailer()
    oid = _post(client, service_headers, _order())[1]["id"]

    r = client.put(f"/api/admin/orders/{oid}/status", json={"status": "shipped", "trackingNumber": "GUIA123"})
    shipped = r.json()
    assert r.status_code == 200
    assert shipped["shipping_status"] == "shipped" and shipped["tracking_number"] == "GUIA123"
    assert shipped["shipped_at"] is not None and shipped["delivered_at"] is None
    assert ("shipping", "GUIA123") in mailer.sent

    delivered = client.put(f"/api/admin/orders/{oid}/status", json={"status": "delivered"}).json()
    assert delivered["delivered_at"] is not None
    assert delivered["shipped_at"] == shipped["shipped_at"]

    r = client.put(f"/api/admin/orders/{oid}/status", json={"status": "perdido"})
    assert r.status_code == 400
    assert r.json()["error"] == "Estado inválido. Debe ser: paid, shipped, o delivered"

    assert client.put("/api/admin/orders/nada/status", json={"status": "paid"}).status_code == 404


def test_admin_listing_search_and_stats(client, service_headers, as_admin):
    _mailer()
    _post(client, service_headers, _order())
    _post(client, service_headers, _order(paypal_order_id="PAY-002", customer_email="luis@correo.mx",
                                          total_amount=500))
    assert len(client.get("/api/admin/orders").json()) == 2
    found = client.get("/api/admin/orders/search", params={"email": "luis"}).json()
    assert [o["paypal_order_id"] for o in found] == ["PAY-002"]

    stats = client.get("/api/admin/orders/stats").json()
    assert stats["totalOrders"] == 2
    assert stats["totalRevenue"] == 1500.0
    assert stats["averageOrderValue"] == 750.0
    assert stats["ordersByStatus"]["paid"] == 2


def test_order_endpoints_auth(client):
    st, js = _post(client, {}, _order())
    assert st == 401
    assert client.get("/api/orders").status_code == 401


def test_order_validation(client, service_headers):
    st, js = _post(client, service_headers, _order(customer_email="no-es-correo", items=[]))
    assert st == 400
    fields = " ".join(js["details"])
    assert "customer_email" in fields and "items" in fields


def test_run_guarded_never_raises():
    calls = []

    def boom():
        calls.append(1)
        raise ValueError("x")

    assert run_guarded("boom", boom, (), {}, retries=1) is False
    assert len(calls) == 2

    effects = SideEffects(retries=0)
    effects.submit("ok", calls.append, 2)
    assert calls[-1] == 2 and effects.submitted[0][0] == "ok"
