"""Inventario administrativo: productos, variaciones por talla, bitácora y ventas.

Cada cambio de stock deja exactamente una fila en `movimientos_inventario`.
Los descuentos por venta son condicionales (`stock >= cantidad`) y la venta,
el descuento y el movimiento se confirman en la misma transacción.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from ..core.config import settings
from ..core.errors import ApiException, InsufficientStock, NotFound
from ..models.inventory import (
    CANALES_VENTA,
    TIPOS_PRODUCTO,
    AlertaStock,
    MovimientoInventario,
    ProductoInventario,
    ProductoVariacion,
    Venta,
)
from ..utils.dates import iso
from ..utils.money import money, to_float
from .alerts import alert_on_change

logger = logging.getLogger(__name__)

_PRODUCT_FIELDS = ("nombre", "tipo", "precio", "descripcion", "imagen_url", "activo", "stock_minimo")


def tipo_movimiento(anterior: int, nuevo: int) -> str:
    if nuevo > anterior:
        return "entrada"
    if nuevo < anterior:
        return "salida"
    return "ajuste"


def signed_delta(mov: MovimientoInventario) -> int:
    if mov.tipo_movimiento == "entrada":
        return mov.cantidad
    if mov.tipo_movimiento == "salida":
        return -mov.cantidad
    return 0


# ---------- serialización ----------
def serialize_variacion(v: ProductoVariacion) -> Dict[str, Any]:
    return {
        "id": v.id,
        "talla": v.talla,
        "stock": v.stock,
        "precio_personalizado": to_float(v.precio_personalizado),
    }


def serialize_producto(p: ProductoInventario) -> Dict[str, Any]:
    variaciones = [serialize_variacion(v) for v in p.variaciones]
    return {
        "id": p.id,
        "nombre": p.nombre,
        "tipo": p.tipo,
        "precio": to_float(p.precio),
        "descripcion": p.descripcion,
        "imagen_url": p.imagen_url,
        "activo": p.activo,
        "stock_minimo": p.stock_minimo,
        "stock_total": sum(v["stock"] for v in variaciones),
        "variaciones": variaciones,
        "created_at": iso(p.created_at),
    }


def serialize_venta(v: Venta) -> Dict[str, Any]:
    return {
        "id": v.id,
        "producto_id": v.producto_id,
        "talla": v.talla,
        "cantidad": v.cantidad,
        "precio_unitario": to_float(v.precio_unitario),
        "total": to_float(v.total),
        "canal": v.canal,
        "cliente_info": v.cliente_info,
        "notas": v.notas,
        "created_at": iso(v.created_at),
        "productos_inventario": (
            {"nombre": v.producto.nombre, "tipo": v.producto.tipo} if v.producto else None
        ),
    }


def serialize_movimiento(m: MovimientoInventario) -> Dict[str, Any]:
    return {
        "id": m.id,
        "producto_id": m.producto_id,
        "talla": m.talla,
        "tipo_movimiento": m.tipo_movimiento,
        "cantidad": m.cantidad,
        "stock_anterior": m.stock_anterior,
        "stock_nuevo": m.stock_nuevo,
        "motivo": m.motivo,
        "referencia_venta": m.referencia_venta,
        "created_at": iso(m.created_at),
    }


def serialize_alerta(a: AlertaStock) -> Dict[str, Any]:
    return {
        "id": a.id,
        "producto_id": a.producto_id,
        "talla": a.talla,
        "tipo_alerta": a.tipo_alerta,
        "mensaje": a.mensaje,
        "leida": a.leida,
        "created_at": iso(a.created_at),
        "productos_inventario": (
            {"nombre": a.producto.nombre, "tipo": a.producto.tipo} if a.producto else None
        ),
    }


# ---------- productos ----------
def _variaciones_from(data: Iterable[Dict[str, Any]]) -> List[ProductoVariacion]:
    out = []
    for v in data:
        out.append(
            ProductoVariacion(
                talla=str(v["talla"]),
                stock=int(v.get("stock") or 0),
                precio_personalizado=v.get("precio_personalizado"),
            )
        )
    return out


def get_producto(db: Session, producto_id: int) -> ProductoInventario:
    p = db.execute(
        select(ProductoInventario)
        .options(selectinload(ProductoInventario.variaciones))
        .where(ProductoInventario.id == producto_id)
    ).scalar_one_or_none()
    if p is None:
        raise NotFound("Producto no encontrado")
    return p


def list_productos(
    db: Session,
    tipo: Optional[str] = None,
    q: Optional[str] = None,
    limite: int = 50,
    incluir_inactivos: bool = False,
) -> List[ProductoInventario]:
    stmt = select(ProductoInventario).options(selectinload(ProductoInventario.variaciones))
    if tipo:
        stmt = stmt.where(ProductoInventario.tipo == tipo)
    if q:
        stmt = stmt.where(ProductoInventario.nombre.ilike(f"%{q}%"))
    if not incluir_inactivos:
        stmt = stmt.where(ProductoInventario.activo.is_(True))
    stmt = stmt.order_by(ProductoInventario.nombre).limit(max(1, limite))
    return list(db.execute(stmt).scalars())


def create_producto(
    db: Session,
    nombre: str,
    tipo: str,
    precio: Any,
    variaciones: Iterable[Dict[str, Any]] = (),
    descripcion: Optional[str] = None,
    imagen_url: Optional[str] = None,
    activo: bool = True,
    stock_minimo: Optional[int] = None,
) -> ProductoInventario:
    if tipo not in TIPOS_PRODUCTO:
        raise ApiException(400, "Tipo de producto inválido")
    p = ProductoInventario(
        nombre=nombre,
        tipo=tipo,
        precio=money(precio),
        descripcion=descripcion,
        imagen_url=imagen_url,
        activo=activo is not False,
        stock_minimo=1 if stock_minimo is None else stock_minimo,
    )
    p.variaciones = _variaciones_from(variaciones)
    db.add(p)
    db.commit()
    logger.info("Producto de inventario creado: %s (%d tallas)", p.id, len(p.variaciones))
    return get_producto(db, p.id)


def update_producto(db: Session, producto_id: int, changes: Dict[str, Any]) -> ProductoInventario:
    p = get_producto(db, producto_id)
    for field in _PRODUCT_FIELDS:
        if field in changes and changes[field] is not None:
            value = changes[field]
            setattr(p, field, money(value) if field == "precio" else value)
    if changes.get("variaciones") is not None:
        # reemplazo completo de tallas; cada diferencia de stock queda en la bitácora
        anteriores = {v.talla: v.stock for v in p.variaciones}
        nuevas = _variaciones_from(changes["variaciones"])
        p.variaciones.clear()
        db.flush()
        p.variaciones.extend(nuevas)
        actuales = {v.talla: v.stock for v in nuevas}
        for talla in sorted(set(anteriores) | set(actuales)):
            anterior, nuevo = anteriores.get(talla, 0), actuales.get(talla, 0)
            if anterior == nuevo:
                continue
            db.add(
                MovimientoInventario(
                    producto_id=producto_id,
                    talla=talla,
                    tipo_movimiento=tipo_movimiento(anterior, nuevo),
                    cantidad=abs(nuevo - anterior),
                    stock_anterior=anterior,
                    stock_nuevo=nuevo,
                    motivo="Edición de tallas del producto",
                )
            )
    db.commit()
    return get_producto(db, producto_id)


def deactivate_producto(db: Session, producto_id: int) -> None:
    p = get_producto(db, producto_id)
    p.activo = False
    db.commit()
    logger.info("Producto de inventario %s desactivado", producto_id)


def _get_variacion(db: Session, producto_id: int, talla: str) -> ProductoVariacion:
    v = db.execute(
        select(ProductoVariacion).where(
            ProductoVariacion.producto_id == producto_id,
            ProductoVariacion.talla == str(talla),
        )
    ).scalar_one_or_none()
    if v is None:
        raise NotFound("Variación de producto no encontrada")
    return v


# ---------- stock ----------
def update_stock(
    db: Session, producto_id: int, talla: str, nuevo_stock: int, motivo: Optional[str] = None
) -> Dict[str, Any]:
    if nuevo_stock < 0:
        raise ApiException(400, "El stock no puede ser negativo")
    for _ in range(max(1, settings.stock_cas_retries)):
        v = _get_variacion(db, producto_id, talla)
        anterior = v.stock
        # CAS sobre el valor leído para que el movimiento refleje el stock real previo
        res = db.execute(
            update(ProductoVariacion)
            .where(ProductoVariacion.id == v.id, ProductoVariacion.stock == anterior)
            .values(stock=nuevo_stock)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.rollback()
            continue
        diferencia = abs(nuevo_stock - anterior)
        db.add(
            MovimientoInventario(
                producto_id=producto_id,
                talla=str(talla),
                tipo_movimiento=tipo_movimiento(anterior, nuevo_stock),
                cantidad=diferencia,
                stock_anterior=anterior,
                stock_nuevo=nuevo_stock,
                motivo=motivo or "Ajuste manual de inventario",
            )
        )
        alert_on_change(db, v.producto, str(talla), anterior, nuevo_stock)
        db.commit()
        db.expire_all()
        logger.info("Stock %s/%s: %s -> %s", producto_id, talla, anterior, nuevo_stock)
        return {
            "mensaje": f"Stock actualizado de {anterior} a {nuevo_stock}",
            "stock_anterior": anterior,
            "stock_nuevo": nuevo_stock,
            "diferencia": diferencia,
        }
    raise ApiException(409, "El stock cambió mientras se actualizaba, intenta de nuevo")


def record_sale(
    db: Session,
    producto_id: int,
    talla: str,
    cantidad: int = 1,
    canal: str = "admin",
    notas: Optional[str] = None,
    cliente_info: Any = None,
) -> Venta:
    if cantidad < 1:
        raise ApiException(400, "La cantidad debe ser al menos 1")
    if canal not in CANALES_VENTA:
        raise ApiException(400, "Canal de venta inválido")
    v = _get_variacion(db, producto_id, talla)
    if v.stock < cantidad:
        raise InsufficientStock(v.stock, cantidad)

    anterior = v.stock
    res = db.execute(
        update(ProductoVariacion)
        .where(ProductoVariacion.id == v.id, ProductoVariacion.stock >= cantidad)
        .values(stock=ProductoVariacion.stock - cantidad)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        # otra venta se llevó las piezas entre la lectura y el descuento
        db.rollback()
        db.expire_all()
        raise InsufficientStock(_get_variacion(db, producto_id, talla).stock, cantidad)

    base = v.precio_personalizado if v.precio_personalizado is not None else v.producto.precio
    precio_unitario = money(base)
    venta = Venta(
        producto_id=producto_id,
        talla=str(talla),
        cantidad=cantidad,
        precio_unitario=precio_unitario,
        total=money(precio_unitario * Decimal(cantidad)),
        canal=canal,
        cliente_info=cliente_info,
        notas=notas,
    )
    db.add(venta)
    db.flush()
    db.add(
        MovimientoInventario(
            producto_id=producto_id,
            talla=str(talla),
            tipo_movimiento="salida",
            cantidad=cantidad,
            stock_anterior=anterior,
            stock_nuevo=anterior - cantidad,
            motivo=f"Venta - Canal: {venta.canal}",
            referencia_venta=venta.id,
        )
    )
    alert_on_change(db, v.producto, str(talla), anterior, anterior - cantidad)
    db.commit()
    db.refresh(venta)
    db.expire_all()
    logger.info("Venta %s: %s x%d talla %s por %s", venta.id, producto_id, cantidad, talla, venta.canal)
    return venta


def list_sales(
    db: Session,
    desde: Optional[datetime] = None,
    hasta: Optional[datetime] = None,
    canal: Optional[str] = None,
    limite: int = 100,
) -> List[Venta]:
    stmt = select(Venta).options(selectinload(Venta.producto))
    if desde:
        stmt = stmt.where(Venta.created_at >= desde)
    if hasta:
        stmt = stmt.where(Venta.created_at <= hasta)
    if canal:
        stmt = stmt.where(Venta.canal == canal)
    stmt = stmt.order_by(Venta.created_at.desc(), Venta.id.desc()).limit(max(1, limite))
    return list(db.execute(stmt).scalars())


def list_movements(db: Session, producto_id: int, talla: Optional[str] = None) -> List[MovimientoInventario]:
    stmt = select(MovimientoInventario).where(MovimientoInventario.producto_id == producto_id)
    if talla is not None:
        stmt = stmt.where(MovimientoInventario.talla == str(talla))
    return list(db.execute(stmt.order_by(MovimientoInventario.id)).scalars())


# ---------- alertas ----------
def list_alerts(db: Session, unread_only: bool = False) -> List[AlertaStock]:
    stmt = select(AlertaStock).options(selectinload(AlertaStock.producto))
    if unread_only:
        stmt = stmt.where(AlertaStock.leida.is_(False))
    stmt = stmt.order_by(AlertaStock.created_at.desc(), AlertaStock.id.desc())
    return list(db.execute(stmt).scalars())


def acknowledge_alert(db: Session, alert_id: int) -> None:
    res = db.execute(
        update(AlertaStock)
        .where(AlertaStock.id == alert_id)
        .values(leida=True)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.rollback()
        raise NotFound("Alerta no encontrada")
    db.commit()


def delete_alert(db: Session, alert_id: int) -> None:
    a = db.get(AlertaStock, alert_id)
    if a is None:
        raise NotFound("Alerta no encontrada")
    db.delete(a)
    db.commit()
