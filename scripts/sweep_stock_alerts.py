"""Genera alertas de stock pendientes (para cron).

    python -m scripts.sweep_stock_alerts
"""
from tienda.core.config import settings
from tienda.core.logging_setup import setup_logging
from tienda.db import SessionLocal
from tienda.services.alerts import sweep_stock_alerts


def main():
    setup_logging(settings)
    db = SessionLocal()
    try:
        created = sweep_stock_alerts(db)
        print(f"ALERTAS_OK creadas={len(created)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
