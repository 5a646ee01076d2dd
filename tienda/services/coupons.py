"""Cupones: validación sin efectos secundarios y redención posterior al pedido."""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ApiException, NotFound
from ..models.coupon import Coupon, UserCoupon
from ..models.order import Order
from ..utils.dates import as_aware, iso, utcnow
from ..utils.money import format_mxn, money, to_float

logger = logging.getLogger(__name__)

DISCOUNT_TYPES = ("percentage", "fixed")
_EDITABLE = (
    "code",
    "description",
    "discount_type",
    "discount_value",
    "min_purchase_amount",
    "max_uses",
    "valid_from",
    "valid_until",
    "is_active",
)
_NULLABLE = ("description", "max_uses", "valid_from", "valid_until")


def serialize_coupon(c: Coupon) -> Dict[str, Any]:
    return {
        "id": c.id,
        "code": c.code,
        "description": c.description,
        "discount_type": c.discount_type,
        "discount_value": to_float(c.discount_value),
        "min_purchase_amount": to_float(c.min_purchase_amount or 0),
        "max_uses": c.max_uses,
        "current_uses": c.current_uses or 0,
        "valid_from": iso(c.valid_from),
        "valid_until": iso(c.valid_until),
        "is_active": bool(c.is_active),
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }


def find_by_code(db: Session, code: str) -> Optional[Coupon]:
    code = (code or "").strip().lower()
    if not code:
        return None
    return db.execute(select(Coupon).where(func.lower(Coupon.code) == code)).scalar_one_or_none()


def compute_discount(c: Coupon, cart_total: Decimal) -> Decimal:
    value = Decimal(str(c.discount_value or 0))
    if c.discount_type == "percentage":
        discount = cart_total * value / Decimal(100)
    else:
        discount = value
    # nunca más que el carrito
    return money(max(Decimal(0), min(discount, cart_total)))


def _fail(message: str) -> Dict[str, Any]:
    return {"valid": False, "discount": 0.0, "message": message}


def validate_coupon(
    db: Session,
    code: str,
    cart_total: Any,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Reglas en orden; gana la primera que falla."""
    coupon = find_by_code(db, code)
    if coupon is None:
        return _fail("Cupón no encontrado")

    if not coupon.is_active:
        return _fail("Este cupón ya no está activo")

    now = as_aware(now) or utcnow()
    valid_from = as_aware(coupon.valid_from)
    valid_until = as_aware(coupon.valid_until)
    if valid_from and now < valid_from:
        return _fail("Este cupón aún no es válido")
    if valid_until and now > valid_until:
        return _fail("Este cupón ha expirado")

    if coupon.max_uses is not None and (coupon.current_uses or 0) >= coupon.max_uses:
        return _fail("Este cupón ha alcanzado su límite de usos")

    if user_id:
        used = db.execute(
            select(UserCoupon.id).where(
                UserCoupon.user_id == user_id,
                UserCoupon.coupon_id == coupon.id,
                UserCoupon.used_at.isnot(None),
            )
        ).first()
        if used:
            return _fail("Ya has usado este cupón anteriormente")

    total = Decimal(str(cart_total))
    minimum = Decimal(str(coupon.min_purchase_amount or 0))
    if total < minimum:
        return _fail(
            f"Compra mínima de ${format_mxn(minimum)} MXN requerida para usar este cupón"
        )

    return {
        "valid": True,
        "discount": float(compute_discount(coupon, total)),
        "coupon": serialize_coupon(coupon),
    }


def redeem_coupon(db: Session, coupon_id: str, user_id: Optional[str], order_id: str) -> None:
    """Marca el cupón como usado. Incremento atómico en SQL, sin leer-modificar-escribir."""
    res = db.execute(
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .values(current_uses=Coupon.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.rollback()
        raise NotFound("Cupón no encontrado")
    if user_id:
        db.add(UserCoupon(user_id=user_id, coupon_id=coupon_id, used_at=utcnow(), order_id=order_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ApiException(400, "Ya has usado este cupón anteriormente")
    logger.info("Cupón %s aplicado para usuario %s en pedido %s", coupon_id, user_id, order_id)


# ---------- administración ----------
def list_coupons(db: Session) -> List[Coupon]:
    return list(db.execute(select(Coupon).order_by(Coupon.created_at.desc())).scalars())


def get_coupon(db: Session, coupon_id: str) -> Coupon:
    c = db.get(Coupon, coupon_id)
    if c is None:
        raise NotFound("Cupón no encontrado")
    return c


def create_coupon(db: Session, data: Dict[str, Any]) -> Coupon:
    if data.get("discount_type") not in DISCOUNT_TYPES:
        raise ApiException(400, "Tipo de descuento inválido")
    if find_by_code(db, data["code"]) is not None:
        raise ApiException(400, "Ya existe un cupón con este código")
    c = Coupon(id=data.get("id") or uuid.uuid4().hex, current_uses=0)
    for field in _EDITABLE:
        if field in data and data[field] is not None:
            setattr(c, field, data[field])
    if c.min_purchase_amount is None:
        c.min_purchase_amount = 0
    if c.is_active is None:
        c.is_active = True
    db.add(c)
    db.commit()
    db.refresh(c)
    logger.info("Cupón creado: %s", c.code)
    return c


def update_coupon(db: Session, coupon_id: str, changes: Dict[str, Any]) -> Coupon:
    c = get_coupon(db, coupon_id)
    changes = {k: v for k, v in changes.items() if k in _EDITABLE}
    new_code = changes.get("code")
    if new_code and new_code.strip().lower() != c.code.lower():
        other = find_by_code(db, new_code)
        if other is not None and other.id != c.id:
            raise ApiException(400, "Ya existe un cupón con este código")
    for field, value in changes.items():
        if value is None and field not in _NULLABLE:
            continue
        setattr(c, field, value)
    db.commit()
    db.refresh(c)
    logger.info("Cupón actualizado: %s", coupon_id)
    return c


def delete_coupon(db: Session, coupon_id: str) -> None:
    c = get_coupon(db, coupon_id)
    db.delete(c)
    db.commit()
    logger.info("Cupón eliminado: %s", coupon_id)


def coupon_stats(db: Session, coupon_id: str) -> Dict[str, Any]:
    c = get_coupon(db, coupon_id)
    usos = db.execute(
        select(UserCoupon.user_id).where(
            UserCoupon.coupon_id == c.id, UserCoupon.used_at.isnot(None)
        )
    ).scalars().all()
    total_discount = db.execute(
        select(func.coalesce(func.sum(Order.coupon_discount), 0)).where(
            func.lower(Order.coupon_code) == c.code.lower()
        )
    ).scalar_one()
    return {
        "totalUses": len(usos),
        "uniqueUsers": len(set(usos)),
        "totalDiscount": to_float(total_discount),
    }
