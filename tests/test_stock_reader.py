from decimal import Decimal

from sqlalchemy.exc import OperationalError

from tienda.db import get_db
from tienda.main import app
from tienda.models.product import Product
from tienda.services.stock import available_stock, get_available_stock

RING_SIZES = [{"size": "7", "stock": 3}, {"size": "8", "stock": 0}]


def _product(db, pid="anillo-1", sizes=None, stock=None):
    p = Product(id=pid, name="Anillo", category="anillos", price=Decimal("899.00"), sizes=sizes, stock=stock)
    db.add(p)
    db.commit()
    return p


def test_sized_product_reads_per_size(db):
    p = _product(db, sizes=RING_SIZES)
    assert available_stock(p, "7") == 3
    assert available_stock(p, "8") == 0
    # talla inexistente o sin talla: no se vende
    assert available_stock(p, "9") == 0
    assert available_stock(p, None) == 0


def test_flat_and_unmanaged_products(db):
    collar = _product(db, pid="collar-1", stock=5)
    libre = _product(db, pid="arete-1")
    assert available_stock(collar) == 5
    assert available_stock(libre) == 999


def test_negative_flat_stock_reads_zero():
    assert available_stock(Product(id="x", stock=-2)) == 0


def test_read_is_idempotent(db):
    _product(db, sizes=RING_SIZES)
    first = get_available_stock(db, "anillo-1", "7")
    second = get_available_stock(db, "anillo-1", "7")
    assert first == second == 3
    assert get_available_stock(db, "no-existe", "7") == 0


def test_stock_endpoint(client, db):
    _product(db, sizes=RING_SIZES)
    r = client.get("/api/products/stock", params={"id": "anillo-1", "size": "7"})
    assert r.status_code == 200
    assert r.json() == {"stock": 3, "productId": "anillo-1", "size": "7"}

    r = client.get("/api/products/stock", params={"id": "anillo-1"})
    assert r.json()["stock"] == 0


def test_stock_endpoint_errors(client):
    r = client.get("/api/products/stock")
    assert r.status_code == 400 and r.json()["error"] == "Product ID is required"

    r = client.get("/api/products/stock", params={"id": "fantasma"})
    assert r.status_code == 404 and r.json()["error"] == "Product not found"


def test_cart_check(client, db):
    _product(db, sizes=RING_SIZES)
    _product(db, pid="collar-1", stock=1)
    r = client.post(
        "/api/products/stock/check",
        json={"items": [{"id": "anillo-1", "selectedSize": "7", "quantity": 2}, {"id": "collar-1", "quantity": 2}]},
    )
    js = r.json()
    assert r.status_code == 200
    assert js["ok"] is False
    assert [it["ok"] for it in js["items"]] == [True, False]
    assert js["items"][1]["available"] == 1


class BrokenSession:
    def get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


def test_database_error_reads_zero(client):
    assert get_available_stock(BrokenSession(), "anillo-1", "7") == 0

    app.dependency_overrides[get_db] = lambda: BrokenSession()
    r = client.get("/api/products/stock", params={"id": "anillo-1", "size": "7"})
    assert r.status_code == 200
    assert r.json() == {"stock": 0, "productId": "anillo-1", "size": "7"}
