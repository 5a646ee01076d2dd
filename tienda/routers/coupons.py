from datetime import datetime
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from ..core.auth import AuthUser, get_current_user, require_admin
from ..db import get_db
from ..services import coupons as coupon_service
from ..utils.money import money

router = APIRouter(tags=["coupons"])


class CouponIn(BaseModel):
    id: Optional[str] = None
    code: str = Field(..., min_length=1, max_length=60, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = None
    discount_type: Literal["percentage", "fixed"]
    discount_value: float = Field(..., gt=0)
    min_purchase_amount: float = Field(0, ge=0)
    max_uses: Optional[int] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("un porcentaje no puede ser mayor a 100")
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError("valid_until debe ser posterior a valid_from")
        return self


class CouponPatch(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=60, pattern=r"^[A-Za-z0-9_-]+$")
    description: Optional[str] = None
    discount_type: Optional[Literal["percentage", "fixed"]] = None
    discount_value: Optional[float] = Field(None, gt=0)
    min_purchase_amount: Optional[float] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


def _money_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("discount_value", "min_purchase_amount"):
        if data.get(key) is not None:
            data[key] = money(data[key])
    return data


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


@router.post("/coupons/validate")
def validate_coupon(
    payload: Dict[str, Any] = Body(...),
    user: Optional[AuthUser] = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    code = payload.get("code")
    cart_total = payload.get("cartTotal")
    if not code or not isinstance(code, str) or not _is_number(cart_total) or cart_total < 0:
        return JSONResponse(
            status_code=400,
            content={"valid": False, "discount": 0, "message": "Datos inválidos"},
        )
    return coupon_service.validate_coupon(db, code, cart_total, user.id if user else None)


# ---------- administración ----------
@router.get("/admin/coupons", dependencies=[Depends(require_admin)])
def list_coupons(db: Session = Depends(get_db)):
    return [coupon_service.serialize_coupon(c) for c in coupon_service.list_coupons(db)]


@router.post("/admin/coupons", status_code=201, dependencies=[Depends(require_admin)])
def create_coupon(payload: CouponIn, db: Session = Depends(get_db)):
    c = coupon_service.create_coupon(db, _money_fields(payload.model_dump()))
    return coupon_service.serialize_coupon(c)


@router.put("/admin/coupons/{coupon_id}", dependencies=[Depends(require_admin)])
def update_coupon(coupon_id: str, payload: CouponPatch, db: Session = Depends(get_db)):
    c = coupon_service.update_coupon(db, coupon_id, _money_fields(payload.model_dump(exclude_unset=True)))
    return coupon_service.serialize_coupon(c)


@router.delete("/admin/coupons/{coupon_id}", dependencies=[Depends(require_admin)])
def delete_coupon(coupon_id: str, db: Session = Depends(get_db)):
    coupon_service.delete_coupon(db, coupon_id)
    return {"success": True}


@router.get("/admin/coupons/{coupon_id}/stats", dependencies=[Depends(require_admin)])
def coupon_stats(coupon_id: str, db: Session = Depends(get_db)):
    return coupon_service.coupon_stats(db, coupon_id)
