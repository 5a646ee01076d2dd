from fastapi import FastAPI

from .core.config import settings
from .core.errors import install_error_handlers
from .core.logging_setup import setup_logging
from .db import Base, engine
from .routers import coupons, health, inventario, orders, products, stock

# IMPORTA MODELOS antes de create_all
from .models import coupon as _coupon_models
from .models import inventory as _inventory_models
from .models import order as _order_models
from .models import product as _product_models
from .models import profile as _profile_models

setup_logging(settings)

# Crea tablas faltantes (desarrollo)
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name, version=settings.app_version)
install_error_handlers(app)

app.include_router(health.router, prefix="/api")
app.include_router(products.router, prefix="/api")
app.include_router(stock.router, prefix="/api")
app.include_router(inventario.router, prefix="/api")
app.include_router(coupons.router, prefix="/api")
app.include_router(orders.router, prefix="/api")
