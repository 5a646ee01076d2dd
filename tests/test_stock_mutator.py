from decimal import Decimal

from tienda.models.product import Product


def _seed(db):
    db.add_all(
        [
            Product(id="anillo-1", name="Anillo", category="anillos", price=Decimal("899"),
                    sizes=[{"size": "7", "stock": 3}, {"size": "8", "stock": 1}]),
            Product(id="collar-1", name="Collar", category="collares", price=Decimal("650"), stock=2),
            Product(id="arete-1", name="Arete", category="aretes", price=Decimal("300")),
        ]
    )
    db.commit()


def _post(client, headers, items, key=None):
    h = dict(headers)
    if key:
        h["Idempotency-Key"] = key
    r = client.post("/api/update-stock", json={"cartItems": items}, headers=h)
    return r.status_code, r.json()


def _reload(db, pid):
    db.expire_all()
    return db.get(Product, pid)


def test_decrements_sized_and_flat(client, db, service_headers):
    _seed(db)
    st, js = _post(
        client,
        service_headers,
        [
            {"id": "anillo-1", "name": "Anillo", "selectedSize": "7", "quantity": 2},
            {"id": "collar-1", "name": "Collar", "quantity": 1},
        ],
    )
    assert st == 200 and js["success"] is True
    assert js["message"] == "Stock updated successfully"

    anillo = _reload(db, "anillo-1")
    assert anillo.sizes == [{"size": "7", "stock": 1}, {"size": "8", "stock": 1}]
    assert anillo.stock_version == 1
    assert _reload(db, "collar-1").stock == 1


def test_clamps_at_zero(client, db, service_headers):
    _seed(db)
    st, _ = _post(
        client,
        service_headers,
        [{"id": "anillo-1", "selectedSize": "8", "quantity": 5}, {"id": "collar-1", "quantity": 9}],
    )
    assert st == 200
    assert _reload(db, "anillo-1").sizes[1]["stock"] == 0
    assert _reload(db, "collar-1").stock == 0


def test_unmanaged_and_unknown_size_are_left_alone(client, db, service_headers):
    _seed(db)
    st, js = _post(
        client,
        service_headers,
        [{"id": "arete-1", "quantity": 1}, {"id": "anillo-1", "selectedSize": "12", "quantity": 1}],
    )
    assert st == 200
    assert [it["after"] for it in js["items"]] == [None, None]
    assert _reload(db, "arete-1").stock is None
    assert _reload(db, "anillo-1").sizes[0]["stock"] == 3


def test_first_failure_stops_the_rest(client, db, service_headers):
    _seed(db)
    st, js = _post(
        client,
        service_headers,
        [
            {"id": "collar-1", "quantity": 1},
            {"id": "fantasma", "name": "Fantasma", "quantity": 1},
            {"id": "anillo-1", "selectedSize": "7", "quantity": 1},
        ],
    )
    assert st == 500
    assert js["success"] is False
    assert "Fantasma" in js["error"]
    assert len(js["details"]["applied"]) == 1

    # lo aplicado antes del fallo queda, lo posterior no se toca
    assert _reload(db, "collar-1").stock == 1
    assert _reload(db, "anillo-1").sizes[0]["stock"] == 3


def test_invalid_sizes_config_fails(client, db, service_headers):
    db.add(Product(id="roto-1", name="Roto", category="anillos", price=Decimal("1"), stock=3))
    db.commit()
    st, js = _post(client, service_headers, [{"id": "roto-1", "selectedSize": "7", "quantity": 1}])
    assert st == 500 and "tallas" in js["error"]


def test_idempotency_key_replays(client, db, service_headers):
    _seed(db)
    items = [{"id": "collar-1", "quantity": 1}]
    st, js = _post(client, service_headers, items, key="cap-123")
    assert st == 200 and "replay" not in js

    st, js = _post(client, service_headers, items, key="cap-123")
    assert st == 200 and js["replay"] is True
    assert _reload(db, "collar-1").stock == 1


def test_requires_service_key(client, db):
    _seed(db)
    items = [{"id": "collar-1", "quantity": 1}]
    st, js = _post(client, {}, items)
    assert st == 401 and js["error"] == "Authentication required"

    st, js = _post(client, {"X-Service-Key": "otra"}, items)
    assert st == 403 and js["error"] == "Invalid service key"
    assert _reload(db, "collar-1").stock == 2


def test_negative_quantity_rejected(client, service_headers):
    st, js = _post(client, service_headers, [{"id": "collar-1", "quantity": -1}])
    assert st == 400
    assert any("quantity" in d for d in js["details"])
