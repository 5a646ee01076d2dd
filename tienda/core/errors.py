import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiException(HTTPException):
    """Error con status HTTP, mensaje presentable y detalles opcionales."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail=message)
        self.details = details


class NotFound(ApiException):
    def __init__(self, message: str, details: Any = None):
        super().__init__(404, message, details)


class InsufficientStock(ApiException):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, available: int, requested: int):
        super().__init__(
            400,
            f"Stock insuficiente. Disponible: {available}, Solicitado: {requested}",
            {"code": self.code, "available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class StockUpdateError(ApiException):
    def __init__(self, message: str, details: Any = None):
        super().__init__(500, message, details)


def _error_body(message: Any, details: Optional[Any] = None) -> dict:
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def _field_errors(exc: RequestValidationError) -> list[str]:
    out = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
        field = ".".join(loc) or "body"
        out.append(f"'{field}' {err.get('msg', 'is invalid')}")
    return out


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    details = getattr(exc, "details", None)
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, details),
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=_error_body("Error de validación", _field_errors(exc)),
    )


async def _database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Error de base de datos en %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Error de base de datos"))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, _database_exception_handler)
