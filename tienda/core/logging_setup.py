from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

_FMT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(settings) -> Optional[Path]:
    """Root logger a consola y, si LOG_DIR está definido, a logs/tienda.log rotativo."""
    level = getattr(logging, str(settings.log_level).upper(), logging.INFO)
    fmt = logging.Formatter(_FMT)

    handlers: list[logging.Handler] = []
    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    stream.setLevel(level)
    handlers.append(stream)

    log_path = None
    if settings.log_dir:
        log_dir = Path(settings.log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / "tienda.log"
        rotating = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8"
        )
        rotating.setFormatter(fmt)
        rotating.setLevel(level)
        handlers.append(rotating)

    root = logging.getLogger()
    root.setLevel(level)
    # evita handlers duplicados si la app se importa dos veces
    if not getattr(root, "_tienda_configured", False):
        for h in handlers:
            root.addHandler(h)
        root._tienda_configured = True

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        logging.getLogger(name).setLevel(level)

    return log_path
