from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from .db import Base, SessionLocal, engine
from .models.coupon import Coupon
from .models.inventory import ProductoInventario, ProductoVariacion
from .models.product import Product


def get_or_create(session: Session, model, defaults=None, **kwargs):
    inst = session.query(model).filter_by(**kwargs).first()
    if inst:
        return inst, False
    params = dict(kwargs)
    if defaults:
        params.update(defaults)
    inst = model(**params)
    session.add(inst)
    session.commit()
    session.refresh(inst)
    return inst, True


def main():
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        # Catálogo público
        anillo, _ = get_or_create(
            db,
            Product,
            id="anillo-corazon-dorado-demo",
            defaults={
                "name": "Anillo Corazón Dorado",
                "category": "anillos",
                "price": Decimal("899.00"),
                "original_price": Decimal("1199.00"),
                "sizes": [{"size": "6", "stock": 2}, {"size": "7", "stock": 3}, {"size": "8", "stock": 0}],
            },
        )
        collar, _ = get_or_create(
            db,
            Product,
            id="collar-perla-demo",
            defaults={"name": "Collar Perla", "category": "collares", "price": Decimal("650.00"), "stock": 5},
        )

        # Inventario administrativo
        inv, created = get_or_create(
            db,
            ProductoInventario,
            nombre="Anillo Corazón Dorado",
            defaults={"tipo": "anillo", "precio": Decimal("899.00"), "stock_minimo": 1},
        )
        if created:
            for talla, stock in (("6", 2), ("7", 3), ("8", 0)):
                db.add(ProductoVariacion(producto_id=inv.id, talla=talla, stock=stock))
            db.commit()

        # Cupones
        get_or_create(
            db,
            Coupon,
            code="VERANO10",
            defaults={
                "id": "verano10",
                "discount_type": "percentage",
                "discount_value": Decimal("10"),
                "min_purchase_amount": Decimal("500"),
                "valid_from": datetime(2024, 1, 1, tzinfo=timezone.utc),
            },
        )

        print(f"Seed OK | products={anillo.id},{collar.id} inventario_id={inv.id} cupon=VERANO10")
    finally:
        db.close()


if __name__ == "__main__":
    main()
