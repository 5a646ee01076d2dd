"""Sesión delegada al proveedor de auth alojado (Supabase) y roles en `profiles`."""
import hmac
import logging
from typing import Optional

import requests
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.profile import Profile
from .config import settings

logger = logging.getLogger(__name__)


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class SupabaseAuth:
    def __init__(self, base_url: str, anon_key: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout

    def get_user(self, token: str) -> Optional[dict]:
        """Devuelve el usuario del token o None si la sesión no es válida."""
        if not self.base_url or not token:
            return None
        try:
            r = requests.get(
                f"{self.base_url}/auth/v1/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException:
            logger.exception("No se pudo contactar al proveedor de auth")
            return None
        if r.status_code != 200:
            return None
        data = r.json()
        return data if isinstance(data, dict) and data.get("id") else None


def get_auth_client() -> SupabaseAuth:
    return SupabaseAuth(settings.supabase_url, settings.supabase_anon_key)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    auth: SupabaseAuth = Depends(get_auth_client),
) -> Optional[AuthUser]:
    token = _bearer(authorization)
    if not token:
        return None
    data = auth.get_user(token)
    if not data:
        return None
    profile = db.get(Profile, data["id"])
    return AuthUser(
        id=data["id"],
        email=data.get("email"),
        role=(profile.role if profile else "user"),
    )


def require_user(user: Optional[AuthUser] = Depends(get_current_user)) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_admin(user: AuthUser = Depends(require_user)) -> AuthUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_service_key(x_service_key: Optional[str] = Header(default=None)) -> None:
    # llave vacía en config = endpoints internos cerrados
    if not x_service_key:
        raise HTTPException(status_code=401, detail="Authentication required")
    expected = settings.service_role_key
    if not expected or not hmac.compare_digest(x_service_key, expected):
        raise HTTPException(status_code=403, detail="Invalid service key")
