import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.auth import require_service_key
from ..core.errors import StockUpdateError
from ..db import get_db
from ..models.product import StockUpdateReceipt
from ..services.stock import decrement_stock

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stock"], dependencies=[Depends(require_service_key)])


class CartItemIn(BaseModel):
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    selectedSize: Optional[str] = None
    quantity: int = Field(..., ge=0)


class UpdateStockIn(BaseModel):
    cartItems: List[CartItemIn]


@router.post("/update-stock")
def update_stock(
    payload: UpdateStockIn,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
):
    """Descuenta stock tras un pago capturado. Llamado una vez por pago."""
    if idempotency_key and db.get(StockUpdateReceipt, idempotency_key) is not None:
        return {"success": True, "message": "Stock updated successfully", "replay": True}

    logger.info("Actualizando stock de %d artículos", len(payload.cartItems))
    try:
        applied = decrement_stock(db, [it.model_dump() for it in payload.cartItems])
    except StockUpdateError as exc:
        logger.error("Fallo al actualizar stock: %s", exc.detail)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": exc.detail, "details": exc.details},
        )

    if idempotency_key:
        db.add(StockUpdateReceipt(idempotency_key=idempotency_key, items_count=len(applied)))
        db.commit()
    return {"success": True, "message": "Stock updated successfully", "items": applied}
