from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..db import Base
from ..utils.dates import utcnow

TIPOS_PRODUCTO = ("anillo", "collar", "otro")
CANALES_VENTA = ("admin", "web", "instagram", "fisico")


class ProductoInventario(Base):
    __tablename__ = "productos_inventario"
    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String(200), nullable=False, index=True)
    tipo = Column(String(20), nullable=False)  # anillo | collar | otro
    precio = Column(Numeric(12, 2), nullable=False)
    descripcion = Column(Text)
    imagen_url = Column(String(500))
    activo = Column(Boolean, default=True, nullable=False)
    stock_minimo = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    variaciones = relationship(
        "ProductoVariacion",
        back_populates="producto",
        cascade="all, delete-orphan",
        order_by="ProductoVariacion.talla",
    )


class ProductoVariacion(Base):
    __tablename__ = "producto_variaciones"
    id = Column(Integer, primary_key=True, index=True)
    producto_id = Column(Integer, ForeignKey("productos_inventario.id"), nullable=False)
    talla = Column(String(20), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    precio_personalizado = Column(Numeric(12, 2))
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    producto = relationship("ProductoInventario", back_populates="variaciones")

    __table_args__ = (UniqueConstraint("producto_id", "talla", name="uq_variacion_talla"),)


class MovimientoInventario(Base):
    """Bitácora inmutable: una fila por venta o ajuste, nunca se edita ni se borra."""

    __tablename__ = "movimientos_inventario"
    id = Column(Integer, primary_key=True)
    producto_id = Column(Integer, ForeignKey("productos_inventario.id"), nullable=False, index=True)
    talla = Column(String(20), nullable=False)
    tipo_movimiento = Column(String(10), nullable=False)  # entrada | salida | ajuste
    cantidad = Column(Integer, nullable=False)  # delta sin signo
    stock_anterior = Column(Integer, nullable=False)
    stock_nuevo = Column(Integer, nullable=False)
    motivo = Column(String(255))
    referencia_venta = Column(Integer, ForeignKey("ventas.id"))
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Venta(Base):
    __tablename__ = "ventas"
    id = Column(Integer, primary_key=True)
    producto_id = Column(Integer, ForeignKey("productos_inventario.id"), nullable=False, index=True)
    talla = Column(String(20), nullable=False)
    cantidad = Column(Integer, nullable=False)
    precio_unitario = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    canal = Column(String(20), nullable=False, default="admin")
    cliente_info = Column(JSON)
    notas = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    producto = relationship("ProductoInventario")


class AlertaStock(Base):
    __tablename__ = "alertas_stock"
    id = Column(Integer, primary_key=True)
    producto_id = Column(Integer, ForeignKey("productos_inventario.id"), nullable=False, index=True)
    talla = Column(String(20))
    tipo_alerta = Column(String(20), nullable=False)  # stock_bajo | agotado
    mensaje = Column(String(255), nullable=False)
    leida = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    producto = relationship("ProductoInventario")
