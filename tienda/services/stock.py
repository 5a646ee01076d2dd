"""Stock del catálogo público (`products.sizes` / `products.stock`)."""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import StockUpdateError
from ..models.product import Product

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _find_size(sizes: list, size: str) -> Optional[dict]:
    for entry in sizes:
        if isinstance(entry, dict) and str(entry.get("size")) == str(size):
            return entry
    return None


def available_stock(product: Product, size: Optional[str] = None) -> int:
    sizes = product.sizes
    if isinstance(sizes, list):
        if not size:
            return 0  # hay que elegir talla primero
        entry = _find_size(sizes, size)
        return max(0, _to_int(entry.get("stock"))) if entry else 0
    if product.stock is not None:
        return max(0, _to_int(product.stock))
    # sin stock administrado
    return settings.stock_sentinel


def get_available_stock(db: Session, product_id: str, size: Optional[str] = None) -> int:
    """Stock disponible; ante error o producto inexistente devuelve 0 para no sobrevender."""
    try:
        product = db.get(Product, product_id)
    except SQLAlchemyError:
        logger.exception("Error leyendo stock de %s", product_id)
        return 0
    if product is None:
        logger.warning("Consulta de stock para producto inexistente %s", product_id)
        return 0
    return available_stock(product, size)


def check_cart(db: Session, items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    lines = []
    for it in items:
        available = get_available_stock(db, it["id"], it.get("selectedSize"))
        requested = _to_int(it.get("quantity"))
        lines.append(
            {
                "id": it["id"],
                "selectedSize": it.get("selectedSize"),
                "requested": requested,
                "available": available,
                "ok": requested <= available,
            }
        )
    return {"ok": all(l["ok"] for l in lines), "items": lines}


def _decrement_flat(db: Session, item: Dict[str, Any], qty: int) -> Dict[str, Any]:
    pid, label = item["id"], item.get("name") or item["id"]
    row = db.execute(select(Product.stock).where(Product.id == pid)).one_or_none()
    if row is None:
        raise StockUpdateError(f"No se encontró el producto {label}")
    if row.stock is None:
        logger.info("Producto %s sin stock administrado; se omite", label)
        return {"id": pid, "size": None, "before": None, "after": None}

    # una sola sentencia: resta y clamp a 0 sin ventana de carrera
    db.execute(
        update(Product)
        .where(Product.id == pid)
        .values(
            stock=case((Product.stock >= qty, Product.stock - qty), else_=0),
            stock_version=Product.stock_version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    after = db.execute(select(Product.stock).where(Product.id == pid)).scalar_one()
    db.commit()
    logger.info("Producto %s: %s -> %s", label, row.stock, after)
    return {"id": pid, "size": None, "before": _to_int(row.stock), "after": _to_int(after)}


def _decrement_sized(db: Session, item: Dict[str, Any], qty: int) -> Dict[str, Any]:
    pid, size = item["id"], str(item["selectedSize"])
    label = item.get("name") or pid
    attempts = max(1, settings.stock_cas_retries)
    for _ in range(attempts):
        row = db.execute(
            select(Product.sizes, Product.stock_version).where(Product.id == pid)
        ).one_or_none()
        if row is None:
            raise StockUpdateError(f"No se encontró el producto {label}")
        if not isinstance(row.sizes, list):
            raise StockUpdateError(f"El producto {label} tiene una configuración de tallas inválida")

        before = after = None
        new_sizes = []
        for entry in row.sizes:
            if isinstance(entry, dict) and str(entry.get("size")) == size:
                before = _to_int(entry.get("stock"))
                after = max(0, before - qty)
                entry = {**entry, "stock": after}
            new_sizes.append(entry)
        if before is None:
            logger.warning("Talla %s no existe en %s; sin cambios", size, label)
            return {"id": pid, "size": size, "before": None, "after": None}

        res = db.execute(
            update(Product)
            .where(Product.id == pid, Product.stock_version == row.stock_version)
            .values(sizes=new_sizes, stock_version=row.stock_version + 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 1:
            db.commit()
            logger.info("Talla %s de %s: %s -> %s", size, label, before, after)
            return {"id": pid, "size": size, "before": before, "after": after}
        db.rollback()
        logger.info("Conflicto de versión en %s talla %s; reintentando", label, size)
    raise StockUpdateError(f"No se pudo actualizar el stock de {label}: conflicto concurrente")


def decrement_stock(db: Session, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Descuenta cada línea en orden. El primer fallo detiene el resto; lo ya aplicado queda aplicado."""
    applied = []
    for item in items:
        qty = max(0, _to_int(item.get("quantity")))
        try:
            if item.get("selectedSize"):
                applied.append(_decrement_sized(db, item, qty))
            else:
                applied.append(_decrement_flat(db, item, qty))
        except StockUpdateError as exc:
            exc.details = {"applied": applied}
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            label = item.get("name") or item.get("id")
            raise StockUpdateError(
                f"No se pudo actualizar el stock de {label}", {"applied": applied}
            ) from exc
    return applied
