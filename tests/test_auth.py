import pytest

from tienda.core import auth as auth_module
from tienda.core.auth import SupabaseAuth, get_auth_client
from tienda.main import app
from tienda.models.profile import Profile


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


@pytest.fixture
def supabase(monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen["url"] = url
        seen["headers"] = headers
        if headers.get("Authorization") == "Bearer buen-token":
            return FakeResponse(200, {"id": "admin-1", "email": "admin@aceves.mx"})
        return FakeResponse(401, {"msg": "invalid JWT"})

    monkeypatch.setattr(auth_module.requests, "get", fake_get)
    app.dependency_overrides[get_auth_client] = lambda: SupabaseAuth("https://demo.supabase.co/", "anon")
    return seen


def test_role_comes_from_profiles(client, db, supabase):
    r = client.get("/api/admin/orders", headers={"Authorization": "Bearer buen-token"})
    assert r.status_code == 403

    db.add(Profile(id="admin-1", email="admin@aceves.mx", role="admin"))
    db.commit()
    r = client.get("/api/admin/orders", headers={"Authorization": "Bearer buen-token"})
    assert r.status_code == 200 and r.json() == []
    assert supabase["url"] == "https://demo.supabase.co/auth/v1/user"
    assert supabase["headers"]["apikey"] == "anon"


def test_bad_token_is_anonymous(client, supabase):
    r = client.get("/api/orders", headers={"Authorization": "Bearer malo"})
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication required"}

    r = client.get("/api/orders", headers={"Authorization": "Basic abc"})
    assert r.status_code == 401
