from datetime import datetime
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.auth import require_admin
from ..db import get_db
from ..services import inventory
from ..services.alerts import sweep_stock_alerts

router = APIRouter(prefix="/inventario", tags=["inventario"], dependencies=[Depends(require_admin)])

TipoProducto = Literal["anillo", "collar", "otro"]
Canal = Literal["admin", "web", "instagram", "fisico"]


class VariacionIn(BaseModel):
    talla: str = Field(..., min_length=1, max_length=20)
    stock: int = Field(0, ge=0)
    precio_personalizado: Optional[float] = Field(None, ge=0)


class ProductoIn(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=200)
    tipo: TipoProducto
    precio: float = Field(..., ge=0)
    descripcion: Optional[str] = None
    imagen_url: Optional[str] = None
    activo: bool = True
    stock_minimo: Optional[int] = Field(None, ge=0)
    variaciones: List[VariacionIn] = Field(default_factory=list)


class ProductoPatch(BaseModel):
    nombre: Optional[str] = Field(None, min_length=1, max_length=200)
    tipo: Optional[TipoProducto] = None
    precio: Optional[float] = Field(None, ge=0)
    descripcion: Optional[str] = None
    imagen_url: Optional[str] = None
    activo: Optional[bool] = None
    stock_minimo: Optional[int] = Field(None, ge=0)
    variaciones: Optional[List[VariacionIn]] = None


class StockIn(BaseModel):
    producto_id: int
    talla: str = Field(..., min_length=1)
    nuevo_stock: int = Field(..., ge=0)
    motivo: Optional[str] = Field(None, max_length=255)


class VentaIn(BaseModel):
    producto_id: int
    talla: str = Field(..., min_length=1)
    cantidad: int = Field(1, ge=1)
    canal: Canal = "admin"
    cliente_info: Optional[Any] = None
    notas: Optional[str] = None


# ---------- productos ----------
@router.get("/productos")
def list_productos(
    tipo: Optional[TipoProducto] = None,
    q: Optional[str] = None,
    limite: int = Query(50, ge=1, le=500),
    incluir_inactivos: bool = False,
    db: Session = Depends(get_db),
):
    rows = inventory.list_productos(db, tipo=tipo, q=q, limite=limite, incluir_inactivos=incluir_inactivos)
    return [inventory.serialize_producto(p) for p in rows]


@router.post("/productos", status_code=201)
def create_producto(payload: ProductoIn, db: Session = Depends(get_db)):
    data = payload.model_dump()
    variaciones = data.pop("variaciones")
    p = inventory.create_producto(db, variaciones=variaciones, **data)
    return inventory.serialize_producto(p)


@router.get("/productos/{producto_id}")
def get_producto(producto_id: int, db: Session = Depends(get_db)):
    return inventory.serialize_producto(inventory.get_producto(db, producto_id))


@router.put("/productos/{producto_id}")
def update_producto(producto_id: int, payload: ProductoPatch, db: Session = Depends(get_db)):
    p = inventory.update_producto(db, producto_id, payload.model_dump(exclude_unset=True))
    return inventory.serialize_producto(p)


@router.delete("/productos/{producto_id}")
def delete_producto(producto_id: int, db: Session = Depends(get_db)):
    inventory.deactivate_producto(db, producto_id)
    return {"message": "Producto eliminado correctamente"}


@router.get("/productos/{producto_id}/movimientos")
def list_movimientos(producto_id: int, talla: Optional[str] = None, db: Session = Depends(get_db)):
    inventory.get_producto(db, producto_id)
    return [inventory.serialize_movimiento(m) for m in inventory.list_movements(db, producto_id, talla)]


# ---------- stock y alertas ----------
@router.put("/stock")
def update_stock(payload: StockIn, db: Session = Depends(get_db)):
    return inventory.update_stock(db, payload.producto_id, payload.talla, payload.nuevo_stock, payload.motivo)


@router.get("/stock")
def list_alertas(no_leidas: bool = False, db: Session = Depends(get_db)):
    sweep_stock_alerts(db)
    return [inventory.serialize_alerta(a) for a in inventory.list_alerts(db, unread_only=no_leidas)]


@router.put("/alertas/{alerta_id}")
def acknowledge_alerta(alerta_id: int, db: Session = Depends(get_db)):
    inventory.acknowledge_alert(db, alerta_id)
    return {"mensaje": "Alerta marcada como leída"}


@router.delete("/alertas/{alerta_id}")
def delete_alerta(alerta_id: int, db: Session = Depends(get_db)):
    inventory.delete_alert(db, alerta_id)
    return {"mensaje": "Alerta eliminada"}


# ---------- ventas ----------
@router.post("/ventas", status_code=201)
def record_venta(payload: VentaIn, db: Session = Depends(get_db)):
    venta = inventory.record_sale(
        db,
        payload.producto_id,
        payload.talla,
        cantidad=payload.cantidad,
        canal=payload.canal,
        notas=payload.notas,
        cliente_info=payload.cliente_info,
    )
    producto = inventory.get_producto(db, payload.producto_id)
    restante = next(v.stock for v in producto.variaciones if v.talla == venta.talla)
    return {
        "venta": inventory.serialize_venta(venta),
        "mensaje": f"Venta registrada correctamente. Stock actualizado: {restante}",
    }


@router.get("/ventas")
def list_ventas(
    desde: Optional[datetime] = None,
    hasta: Optional[datetime] = None,
    canal: Optional[Canal] = None,
    limite: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    rows = inventory.list_sales(db, desde=desde, hasta=hasta, canal=canal, limite=limite)
    return [inventory.serialize_venta(v) for v in rows]
