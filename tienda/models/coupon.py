from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from ..db import Base
from ..utils.dates import utcnow


class Coupon(Base):
    __tablename__ = "coupons"
    id = Column(String(64), primary_key=True)
    code = Column(String(60), unique=True, index=True, nullable=False)
    description = Column(String(255))
    discount_type = Column(String(20), nullable=False)  # 'percentage' | 'fixed'
    discount_value = Column(Numeric(12, 2), nullable=False)
    min_purchase_amount = Column(Numeric(12, 2), default=0, nullable=False)
    max_uses = Column(Integer)  # NULL = ilimitado
    current_uses = Column(Integer, default=0, nullable=False)
    valid_from = Column(DateTime(timezone=True))
    valid_until = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class UserCoupon(Base):
    __tablename__ = "user_coupons"
    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    coupon_id = Column(String(64), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False)
    used_at = Column(DateTime(timezone=True))
    order_id = Column(String(64))

    __table_args__ = (UniqueConstraint("user_id", "coupon_id", name="uq_user_coupon"),)
