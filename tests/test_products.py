def _product_body(**over):
    body = {"name": "Anillo Corazón Dorado", "category": "anillos", "price": 899, "original_price": 1199,
            "sizes": [{"size": "7", "stock": 3}]}
    body.update(over)
    return body


def test_admin_creates_product_with_slug_id(client, as_admin):
    r = client.post("/api/products", json=_product_body())
    assert r.status_code == 201
    js = r.json()
    assert js["id"].startswith("anillo-corazon-dorado-")
    assert js["on_sale"] is True

    r = client.get(f"/api/products/{js['id']}")
    assert r.status_code == 200 and r.json()["sizes"] == [{"size": "7", "stock": 3}]

    r = client.get("/api/products", params={"promociones": True})
    assert [p["id"] for p in r.json()] == [js["id"]]


def test_sizes_and_flat_stock_are_exclusive(client, as_admin):
    r = client.post("/api/products", json=_product_body(stock=4))
    assert r.status_code == 400
    assert r.json()["error"] == "Error de validación"


def test_update_and_delete(client, as_admin):
    pid = client.post("/api/products", json=_product_body(sizes=None, stock=2)).json()["id"]

    r = client.put(f"/api/products/{pid}", json={"stock": 7, "price": 950})
    assert r.status_code == 200
    assert r.json()["stock"] == 7 and r.json()["price"] == 950.0

    r = client.put(f"/api/products/{pid}", json={"sizes": [{"size": "6", "stock": 1}]})
    assert r.status_code == 400

    r = client.delete(f"/api/products/{pid}")
    assert r.status_code == 200 and r.json() == {"success": True}
    assert client.get(f"/api/products/{pid}").status_code == 404


def test_catalog_writes_need_admin(client, as_user):
    r = client.post("/api/products", json=_product_body())
    assert r.status_code == 403
    assert r.json()["error"] == "Admin access required"
