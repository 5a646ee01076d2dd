"""Pedidos: alta única por captura de pago y progreso del envío."""
import logging
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import ApiException, NotFound
from ..db import SessionLocal
from ..models.order import SHIPPING_STATUSES, GuestEmail, Order
from ..utils.dates import iso, utcnow
from ..utils.money import money, to_float
from .coupons import find_by_code, redeem_coupon
from .email import EmailService, get_email_service
from .side_effects import SideEffects

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = Decimal("0.01")


def serialize_order(o: Order) -> Dict[str, Any]:
    return {
        "id": o.id,
        "paypal_order_id": o.paypal_order_id,
        "user_id": o.user_id,
        "customer_name": o.customer_name,
        "customer_email": o.customer_email,
        "customer_phone": o.customer_phone,
        "shipping_address": o.shipping_address,
        "secondary_shipping_address": o.secondary_shipping_address,
        "items": o.items,
        "total_amount": to_float(o.total_amount),
        "original_total": to_float(o.original_total),
        "coupon_code": o.coupon_code,
        "coupon_discount": to_float(o.coupon_discount),
        "user_discount": to_float(o.user_discount),
        "status": o.status,
        "shipping_status": o.shipping_status,
        "tracking_number": o.tracking_number,
        "shipped_at": iso(o.shipped_at),
        "delivered_at": iso(o.delivered_at),
        "is_guest": o.is_guest,
        "is_envio_cruzado": o.is_envio_cruzado,
        "address_1_notes": o.address_1_notes,
        "address_2_notes": o.address_2_notes,
        "created_at": iso(o.created_at),
    }


def check_totals(data: Dict[str, Any]) -> None:
    if data.get("original_total") is None:
        return
    expected = Decimal(str(data["original_total"]))
    expected -= Decimal(str(data.get("coupon_discount") or 0))
    expected -= Decimal(str(data.get("user_discount") or 0))
    expected = money(max(expected, Decimal(0)))
    got = money(data["total_amount"])
    if abs(expected - got) > TOTAL_TOLERANCE:
        raise ApiException(
            400,
            "El total del pedido no coincide con los descuentos aplicados",
            {"expected": float(expected), "total_amount": float(got)},
        )


def get_by_paypal_id(db: Session, paypal_order_id: str) -> Optional[Order]:
    return db.execute(
        select(Order).where(Order.paypal_order_id == paypal_order_id)
    ).scalar_one_or_none()


def record_guest_email(email: str, order_ref: str, session_factory: Callable[[], Session] = SessionLocal) -> None:
    db = session_factory()
    try:
        res = db.execute(
            update(GuestEmail)
            .where(GuestEmail.email == email)
            .values(total_orders=GuestEmail.total_orders + 1, last_order_at=utcnow())
        )
        if res.rowcount == 0:
            db.add(GuestEmail(email=email, first_order_id=order_ref, total_orders=1, last_order_at=utcnow()))
        db.commit()
    finally:
        db.close()


def _redeem_for(db: Session, order: Order) -> None:
    coupon = find_by_code(db, order.coupon_code)
    if coupon is None:
        logger.warning("Pedido %s con cupón desconocido %s", order.id, order.coupon_code)
        return
    try:
        redeem_coupon(db, coupon.id, order.user_id, order.id)
    except (ApiException, SQLAlchemyError):
        # el pedido ya existe; queda pendiente de conciliar
        db.rollback()
        logger.exception("No se pudo marcar el cupón %s como usado en pedido %s", coupon.code, order.id)


def create_order(
    db: Session,
    data: Dict[str, Any],
    side_effects: SideEffects,
    mailer: Optional[EmailService] = None,
) -> Tuple[Order, bool]:
    """Guarda el pedido. Devuelve (pedido, creado); una captura repetida devuelve el existente."""
    existing = get_by_paypal_id(db, data["paypal_order_id"])
    if existing is not None:
        logger.info("Pedido %s ya registrado; se devuelve sin efectos", data["paypal_order_id"])
        return existing, False

    check_totals(data)
    data = dict(data)
    for key in ("total_amount", "original_total", "coupon_discount", "user_discount"):
        if data.get(key) is not None:
            data[key] = money(data[key])
    order = Order(id=data.get("id") or uuid.uuid4().hex, **{k: v for k, v in data.items() if k != "id"})
    db.add(order)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_by_paypal_id(db, data["paypal_order_id"])
        if existing is None:
            raise
        return existing, False
    db.refresh(order)
    logger.info("Pedido creado: %s", order.id)

    if order.coupon_code:
        _redeem_for(db, order)
        db.refresh(order)

    mailer = mailer or get_email_service()
    snapshot = serialize_order(order)
    side_effects.submit("order_confirmation_email", mailer.send_order_confirmation, snapshot)
    if order.is_guest and order.customer_email:
        side_effects.submit("guest_email_upsert", record_guest_email, order.customer_email, order.paypal_order_id)
    return order, True


def get_order(db: Session, order_id: str) -> Order:
    o = db.get(Order, order_id)
    if o is None:
        raise NotFound("Pedido no encontrado")
    return o


def update_order_status(
    db: Session,
    order_id: str,
    status: str,
    side_effects: SideEffects,
    tracking_number: Optional[str] = None,
    mailer: Optional[EmailService] = None,
) -> Order:
    """Sobrescribe el estado de envío sin validar el orden de las transiciones."""
    if status not in SHIPPING_STATUSES[1:]:
        raise ApiException(400, "Estado inválido. Debe ser: paid, shipped, o delivered")
    o = get_order(db, order_id)
    o.shipping_status = status
    if status == "shipped":
        o.shipped_at = utcnow()
        if tracking_number:
            o.tracking_number = tracking_number
    if status == "delivered":
        o.delivered_at = utcnow()
    db.commit()
    db.refresh(o)
    logger.info("Pedido %s -> %s", order_id, status)

    if status == "shipped":
        mailer = mailer or get_email_service()
        side_effects.submit("shipping_email", mailer.send_shipping_notification, serialize_order(o))
    return o


def list_user_orders(db: Session, user_id: str) -> List[Order]:
    return list(
        db.execute(
            select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc())
        ).scalars()
    )


def list_orders(db: Session, status: Optional[str] = None, limit: Optional[int] = None) -> List[Order]:
    stmt = select(Order).order_by(Order.created_at.desc())
    if status:
        stmt = stmt.where(Order.shipping_status == status)
    if limit:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars())


def search_by_email(db: Session, email: str) -> List[Order]:
    return list(
        db.execute(
            select(Order)
            .where(Order.customer_email.ilike(f"%{email}%"))
            .order_by(Order.created_at.desc())
        ).scalars()
    )


def order_stats(db: Session) -> Dict[str, Any]:
    total_orders, revenue = db.execute(
        select(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
    ).one()
    by_status = {s: 0 for s in SHIPPING_STATUSES}
    for status, n in db.execute(select(Order.shipping_status, func.count(Order.id)).group_by(Order.shipping_status)):
        by_status[status or "pending"] = by_status.get(status or "pending", 0) + n
    revenue = money(revenue)
    avg = money(revenue / total_orders) if total_orders else money(0)
    return {
        "totalOrders": total_orders,
        "totalRevenue": float(revenue),
        "averageOrderValue": float(avg),
        "ordersByStatus": by_status,
    }
