from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Numeric, String, Text

from ..db import Base
from ..utils.dates import utcnow

SHIPPING_STATUSES = ("pending", "paid", "shipped", "delivered")


class Order(Base):
    """Snapshot desnormalizado de la compra; solo cambian envío y guía."""

    __tablename__ = "orders"
    id = Column(String(64), primary_key=True)
    paypal_order_id = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(64), index=True)
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(200), nullable=False, index=True)
    customer_phone = Column(String(40))
    shipping_address = Column(JSON, nullable=False)
    secondary_shipping_address = Column(JSON)
    items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    original_total = Column(Numeric(12, 2))
    coupon_code = Column(String(60))
    coupon_discount = Column(Numeric(12, 2), default=0)
    user_discount = Column(Numeric(12, 2), default=0)
    status = Column(String(30), default="completed")
    shipping_status = Column(String(20), default="paid", nullable=False)
    tracking_number = Column(String(80))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    is_guest = Column(Boolean, default=False, nullable=False)
    is_envio_cruzado = Column(Boolean, default=False)
    address_1_notes = Column(Text)
    address_2_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class GuestEmail(Base):
    __tablename__ = "guest_emails"
    email = Column(String(200), primary_key=True)
    first_order_id = Column(String(64))
    total_orders = Column(Integer, default=1, nullable=False)
    last_order_at = Column(DateTime(timezone=True), default=utcnow)
