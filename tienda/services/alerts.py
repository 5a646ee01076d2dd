"""Alertas de stock de `producto_variaciones`.

Una alerta se abre cuando el stock de una talla baja y cruza el mínimo
(`stock_bajo`) o llega a cero (`agotado`). `alert_on_change` corre dentro de la
transacción de la venta o del ajuste. `sweep_stock_alerts` solo cubre tallas que
nunca tuvieron alerta de ese tipo (altas con stock bajo, datos cargados a mano);
corre en cada consulta de alertas y desde `scripts/sweep_stock_alerts.py`.
Marcar una alerta como leída la cierra hasta el siguiente cruce.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.inventory import AlertaStock, ProductoInventario, ProductoVariacion

logger = logging.getLogger(__name__)


def alert_kind(stock: int, stock_minimo: int) -> Optional[str]:
    if stock <= 0:
        return "agotado"
    if stock <= stock_minimo:
        return "stock_bajo"
    return None


def _mensaje(kind: str, p: ProductoInventario, talla: str, stock: int) -> str:
    if kind == "agotado":
        return f"{p.nombre} talla {talla} está agotado"
    return f"{p.nombre} talla {talla} tiene stock bajo ({stock} de mínimo {p.stock_minimo})"


def _open_alert_exists(db: Session, producto_id: int, talla: str, kind: str) -> bool:
    return (
        db.execute(
            select(AlertaStock.id).where(
                AlertaStock.producto_id == producto_id,
                AlertaStock.talla == talla,
                AlertaStock.tipo_alerta == kind,
                AlertaStock.leida.is_(False),
            )
        ).first()
        is not None
    )


def alert_on_change(
    db: Session, p: ProductoInventario, talla: str, anterior: int, nuevo: int
) -> Optional[AlertaStock]:
    """Agrega (sin confirmar) la alerta del cruce anterior -> nuevo, si lo hay."""
    if nuevo >= anterior:
        return None
    kind = alert_kind(nuevo, p.stock_minimo)
    if kind is None or kind == alert_kind(anterior, p.stock_minimo):
        return None
    if _open_alert_exists(db, p.id, talla, kind):
        return None
    alerta = AlertaStock(
        producto_id=p.id, talla=talla, tipo_alerta=kind, mensaje=_mensaje(kind, p, talla, nuevo)
    )
    db.add(alerta)
    logger.info("Alerta %s: producto %s talla %s (%s -> %s)", kind, p.id, talla, anterior, nuevo)
    return alerta


def sweep_stock_alerts(db: Session) -> List[AlertaStock]:
    rows = db.execute(
        select(ProductoVariacion, ProductoInventario)
        .join(ProductoInventario, ProductoVariacion.producto_id == ProductoInventario.id)
        .where(ProductoInventario.activo.is_(True))
    ).all()

    # leídas o no: una alerta ya emitida no se repite sin un nuevo cruce
    emitidas = {
        (producto_id, talla, tipo)
        for producto_id, talla, tipo in db.execute(
            select(AlertaStock.producto_id, AlertaStock.talla, AlertaStock.tipo_alerta)
        )
    }

    created = []
    for v, p in rows:
        kind = alert_kind(v.stock, p.stock_minimo)
        if kind is None or (p.id, v.talla, kind) in emitidas:
            continue
        alerta = AlertaStock(
            producto_id=p.id,
            talla=v.talla,
            tipo_alerta=kind,
            mensaje=_mensaje(kind, p, v.talla, v.stock),
        )
        db.add(alerta)
        emitidas.add((p.id, v.talla, kind))
        created.append(alerta)

    if created:
        db.commit()
        logger.info("Alertas de stock generadas: %d", len(created))
    return created
