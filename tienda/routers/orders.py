from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.auth import AuthUser, require_admin, require_service_key, require_user
from ..db import get_db
from ..services import orders as order_service
from ..services.email import EmailService, get_email_service
from ..services.side_effects import SideEffects, get_side_effects

router = APIRouter(tags=["orders"])


class AddressIn(BaseModel):
    calle: str = Field(..., min_length=1)
    colonia: str = ""
    ciudad: str = Field(..., min_length=1)
    cp: str = Field(..., pattern=r"^\d{4,6}$")
    pais: str = "México"


class OrderItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    product_name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    selected_size: Optional[str] = None


class OrderIn(BaseModel):
    paypal_order_id: str = Field(..., min_length=1, max_length=64)
    user_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: str = Field(..., max_length=200, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    customer_phone: Optional[str] = Field(None, max_length=40)
    shipping_address: AddressIn
    secondary_shipping_address: Optional[AddressIn] = None
    items: List[OrderItemIn] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    original_total: Optional[float] = Field(None, ge=0)
    coupon_code: Optional[str] = None
    coupon_discount: float = Field(0, ge=0)
    user_discount: float = Field(0, ge=0)
    status: str = "completed"
    shipping_status: Literal["pending", "paid", "shipped", "delivered"] = "paid"
    is_guest: bool = False
    is_envio_cruzado: bool = False
    address_1_notes: Optional[str] = None
    address_2_notes: Optional[str] = None


class StatusIn(BaseModel):
    status: Optional[str] = None
    trackingNumber: Optional[str] = None
    tracking_number: Optional[str] = None


@router.post("/orders/create", dependencies=[Depends(require_service_key)])
def create_order(
    payload: OrderIn,
    response: Response,
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    mailer: EmailService = Depends(get_email_service),
):
    order, created = order_service.create_order(db, payload.model_dump(), side_effects, mailer)
    response.status_code = 201 if created else 200
    return order_service.serialize_order(order)


@router.get("/orders")
def my_orders(user: AuthUser = Depends(require_user), db: Session = Depends(get_db)):
    return [order_service.serialize_order(o) for o in order_service.list_user_orders(db, user.id)]


@router.get("/admin/orders", dependencies=[Depends(require_admin)])
def list_orders(
    status: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return [order_service.serialize_order(o) for o in order_service.list_orders(db, status, limit)]


@router.get("/admin/orders/search", dependencies=[Depends(require_admin)])
def search_orders(email: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return [order_service.serialize_order(o) for o in order_service.search_by_email(db, email)]


@router.get("/admin/orders/stats", dependencies=[Depends(require_admin)])
def stats(db: Session = Depends(get_db)):
    return order_service.order_stats(db)


@router.put("/admin/orders/{order_id}/status", dependencies=[Depends(require_admin)])
def update_status(
    order_id: str,
    payload: StatusIn,
    db: Session = Depends(get_db),
    side_effects: SideEffects = Depends(get_side_effects),
    mailer: EmailService = Depends(get_email_service),
):
    # camelCase y snake_case por compatibilidad
    tracking = payload.trackingNumber or payload.tracking_number
    order = order_service.update_order_status(
        db, order_id, payload.status or "", side_effects, tracking_number=tracking, mailer=mailer
    )
    return order_service.serialize_order(order)
