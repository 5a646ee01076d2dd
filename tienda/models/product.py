from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Numeric, String, Text

from ..db import Base
from ..utils.dates import utcnow


class Product(Base):
    """Catálogo público. Stock en `sizes` (anillos) o en `stock` plano (collares)."""

    __tablename__ = "products"
    id = Column(String(120), primary_key=True)  # slug-timestamp
    name = Column(String(200), nullable=False)
    category = Column(String(60), nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    original_price = Column(Numeric(12, 2))
    description = Column(Text)
    images = Column(JSON, default=list)
    sizes = Column(JSON)  # [{"size": "7", "stock": 3}, ...]
    stock = Column(Integer)
    envio_cruzado = Column(Boolean, default=False)
    # token de concurrencia optimista para escrituras sobre `sizes`
    stock_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class StockUpdateReceipt(Base):
    __tablename__ = "stock_update_receipts"
    idempotency_key = Column(String(120), primary_key=True)
    items_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
