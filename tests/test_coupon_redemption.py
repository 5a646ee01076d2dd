from decimal import Decimal

import pytest

from tienda.core.errors import ApiException, NotFound
from tienda.models.coupon import Coupon, UserCoupon
from tienda.services.coupons import redeem_coupon


def _coupon(db, **over):
    fields = dict(id="verano10", code="VERANO10", discount_type="percentage", discount_value=Decimal("10"),
                  min_purchase_amount=Decimal("0"), current_uses=0, is_active=True)
    fields.update(over)
    db.add(Coupon(**fields))
    db.commit()


def test_redeem_increments_and_links_user(db):
    _coupon(db)
    redeem_coupon(db, "verano10", "user-1", "orden-1")
    redeem_coupon(db, "verano10", None, "orden-2")
    db.expire_all()
    assert db.get(Coupon, "verano10").current_uses == 2
    link = db.query(UserCoupon).one()
    assert (link.user_id, link.order_id) == ("user-1", "orden-1")
    assert link.used_at is not None


def test_same_user_twice_is_rejected_and_not_counted(db):
    _coupon(db)
    redeem_coupon(db, "verano10", "user-1", "orden-1")
    with pytest.raises(ApiException) as exc:
        redeem_coupon(db, "verano10", "user-1", "orden-2")
    assert exc.value.status_code == 400
    db.expire_all()
    assert db.get(Coupon, "verano10").current_uses == 1


def test_unknown_coupon(db):
    with pytest.raises(NotFound):
        redeem_coupon(db, "no-existe", "user-1", "orden-1")


def _body(**over):
    body = {"code": "NAVIDAD20", "discount_type": "percentage", "discount_value": 20, "min_purchase_amount": 300}
    body.update(over)
    return body


def test_admin_coupon_crud(client, as_admin):
    r = client.post("/api/admin/coupons", json=_body())
    assert r.status_code == 201
    cid = r.json()["id"]
    assert r.json()["current_uses"] == 0

    r = client.post("/api/admin/coupons", json=_body(code="navidad20"))
    assert r.status_code == 400 and r.json()["error"] == "Ya existe un cupón con este código"

    r = client.put(f"/api/admin/coupons/{cid}", json={"max_uses": 50, "is_active": False})
    assert r.status_code == 200
    assert (r.json()["max_uses"], r.json()["is_active"]) == (50, False)

    assert [c["code"] for c in client.get("/api/admin/coupons").json()] == ["NAVIDAD20"]

    r = client.delete(f"/api/admin/coupons/{cid}")
    assert r.json() == {"success": True}
    assert client.get(f"/api/admin/coupons/{cid}/stats").status_code == 404


def test_admin_coupon_validation(client, as_admin):
    r = client.post("/api/admin/coupons", json=_body(discount_value=150))
    assert r.status_code == 400
    r = client.post("/api/admin/coupons", json=_body(discount_type="bogo"))
    assert r.status_code == 400
    assert any("discount_type" in d for d in r.json()["details"])


def test_admin_coupon_stats(client, db, as_admin):
    _coupon(db)
    redeem_coupon(db, "verano10", "user-1", "o-1")
    redeem_coupon(db, "verano10", "user-2", "o-2")
    js = client.get("/api/admin/coupons/verano10/stats").json()
    assert js["totalUses"] == 2 and js["uniqueUsers"] == 2
    assert js["totalDiscount"] == 0.0


def test_admin_coupons_need_admin(client, as_user):
    assert client.get("/api/admin/coupons").status_code == 403
