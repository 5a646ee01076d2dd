import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.auth import require_admin
from ..core.errors import NotFound
from ..db import get_db
from ..models.product import Product
from ..services import stock as stock_service
from ..utils.dates import iso
from ..utils.money import money, to_float
from ..utils.text import product_id_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])


class SizeIn(BaseModel):
    size: str = Field(..., min_length=1)
    stock: int = Field(0, ge=0)


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    sizes: Optional[List[SizeIn]] = None
    stock: Optional[int] = Field(None, ge=0)
    envio_cruzado: bool = False

    @model_validator(mode="after")
    def _sizes_or_stock(self):
        if self.sizes is not None and self.stock is not None:
            raise ValueError("un producto usa tallas o stock plano, no ambos")
        return self


class ProductPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    images: Optional[List[str]] = None
    sizes: Optional[List[SizeIn]] = None
    stock: Optional[int] = Field(None, ge=0)
    envio_cruzado: Optional[bool] = None


class StockCheckItem(BaseModel):
    id: str
    selectedSize: Optional[str] = None
    quantity: int = Field(1, ge=1)


class StockCheckIn(BaseModel):
    items: List[StockCheckItem] = Field(..., min_length=1)


def _serialize_product(p: Product):
    price = to_float(p.price)
    original = to_float(p.original_price)
    return {
        "id": p.id,
        "name": p.name,
        "category": p.category,
        "price": price,
        "original_price": original,
        "on_sale": original is not None and original > price,
        "description": p.description,
        "images": p.images or [],
        "sizes": p.sizes,
        "stock": p.stock,
        "envio_cruzado": bool(p.envio_cruzado),
        "created_at": iso(p.created_at),
    }


def _get_product(db: Session, product_id: str) -> Product:
    p = db.get(Product, product_id)
    if p is None:
        raise NotFound("Producto no encontrado")
    return p


@router.get("/products")
def list_products(
    category: Optional[str] = None,
    promociones: bool = False,
    db: Session = Depends(get_db),
):
    stmt = select(Product).order_by(Product.created_at.desc())
    if category:
        stmt = stmt.where(Product.category == category)
    if promociones:
        stmt = stmt.where(Product.original_price.isnot(None), Product.original_price > Product.price)
    return [_serialize_product(p) for p in db.execute(stmt).scalars()]


@router.get("/products/stock")
def product_stock(
    id: Optional[str] = Query(default=None),
    size: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    if not id:
        raise HTTPException(400, "Product ID is required")
    try:
        product = db.get(Product, id)
    except SQLAlchemyError:
        # fail-closed: sin base de datos no se vende
        logger.exception("Error de base de datos consultando stock de %s", id)
        return {"stock": 0, "productId": id, "size": size}
    if product is None:
        raise NotFound("Product not found")
    return {"stock": stock_service.available_stock(product, size), "productId": id, "size": size}


@router.post("/products/stock/check")
def check_stock(payload: StockCheckIn, db: Session = Depends(get_db)):
    return stock_service.check_cart(db, [it.model_dump() for it in payload.items])


@router.get("/products/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    return _serialize_product(_get_product(db, product_id))


@router.post("/products", status_code=201, dependencies=[Depends(require_admin)])
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    data = payload.model_dump()
    p = Product(
        id=product_id_for(payload.name),
        name=data["name"],
        category=data["category"],
        price=money(data["price"]),
        original_price=money(data["original_price"]) if data["original_price"] is not None else None,
        description=data["description"],
        images=data["images"],
        sizes=data["sizes"],
        stock=data["stock"],
        envio_cruzado=data["envio_cruzado"],
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    logger.info("Producto creado: %s", p.id)
    return _serialize_product(p)


@router.put("/products/{product_id}", dependencies=[Depends(require_admin)])
def update_product(product_id: str, payload: ProductPatch, db: Session = Depends(get_db)):
    p = _get_product(db, product_id)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field in ("name", "category", "price", "envio_cruzado"):
            continue
        if field in ("price", "original_price") and value is not None:
            value = money(value)
        setattr(p, field, value)
    if p.sizes is not None and p.stock is not None:
        db.rollback()
        raise HTTPException(400, "Un producto usa tallas o stock plano, no ambos")
    if "sizes" in changes or "stock" in changes:
        p.stock_version = (p.stock_version or 0) + 1
    db.commit()
    db.refresh(p)
    return _serialize_product(p)


@router.delete("/products/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(product_id: str, db: Session = Depends(get_db)):
    p = _get_product(db, product_id)
    db.delete(p)
    db.commit()
    logger.info("Producto eliminado: %s", product_id)
    return {"success": True}
