import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", operation_id="health_v1")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1")).scalar()
        database = "connected"
    except SQLAlchemyError:
        logger.exception("Health check: base de datos no disponible")
        database = "disconnected"
    return {"status": "ok", "database": database, "time": datetime.now(timezone.utc).isoformat()}
