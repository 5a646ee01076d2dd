"""Efectos secundarios "fire-and-forget": correo, registro de invitados.

Cada tarea corre con su propio presupuesto de reintentos; un fallo queda en el
log y nunca se propaga a la operación principal.
"""
import logging
from typing import Any, Callable, List, Optional, Tuple

from fastapi import BackgroundTasks

from ..core.config import settings

logger = logging.getLogger(__name__)


def run_guarded(name: str, fn: Callable[..., Any], args: tuple, kwargs: dict, retries: int) -> bool:
    attempts = max(1, retries + 1)
    for attempt in range(1, attempts + 1):
        try:
            fn(*args, **kwargs)
            return True
        except Exception:
            if attempt < attempts:
                logger.warning("Side effect %s falló (intento %d/%d)", name, attempt, attempts, exc_info=True)
            else:
                logger.error("Side effect %s descartado tras %d intentos", name, attempts, exc_info=True)
    return False


class SideEffects:
    def __init__(self, background_tasks: Optional[BackgroundTasks] = None, retries: Optional[int] = None):
        self._bg = background_tasks
        self.retries = settings.side_effect_retries if retries is None else retries
        self.submitted: List[Tuple[str, Callable[..., Any]]] = []

    def submit(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> None:
        self.submitted.append((name, fn))
        if self._bg is None:
            run_guarded(name, fn, args, kwargs, self.retries)
        else:
            self._bg.add_task(run_guarded, name, fn, args, kwargs, self.retries)


def get_side_effects(background_tasks: BackgroundTasks) -> SideEffects:
    return SideEffects(background_tasks)
