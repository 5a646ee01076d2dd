import os
import tempfile

# La app lee la config al importarse: apuntar a una base temporal antes.
_TMP = tempfile.mkdtemp(prefix="tienda-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db").replace("\\", "/")
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["SUPABASE_URL"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["LOG_DIR"] = ""

import pytest
from fastapi.testclient import TestClient

from tienda.core.auth import AuthUser, get_current_user
from tienda.db import Base, SessionLocal, engine
from tienda.main import app

SERVICE_HEADERS = {"X-Service-Key": "test-service-key"}


@pytest.fixture(autouse=True)
def _fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _as(user):
    app.dependency_overrides[get_current_user] = lambda: user
    return user


@pytest.fixture
def as_admin():
    return _as(AuthUser(id="admin-1", email="admin@aceves.mx", role="admin"))


@pytest.fixture
def as_user():
    return _as(AuthUser(id="user-1", email="cliente@correo.mx", role="user"))


@pytest.fixture
def service_headers():
    return dict(SERVICE_HEADERS)
