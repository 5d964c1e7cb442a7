import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
import api.dependencies as dependencies
from api.github_routes import get_github_service
from config.settings import get_settings


client = TestClient(app)
REAL_ASYNC_CLIENT = httpx.AsyncClient


class StubGitHubService:
    def status(self, user_id):
        return {"connected": True, "username": f"gh-{user_id}"}


@pytest.fixture(autouse=True)
def override_github_service():
    app.dependency_overrides[get_github_service] = lambda: StubGitHubService()
    yield
    app.dependency_overrides.clear()


def _patch_supabase(monkeypatch, handler):
    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return REAL_ASYNC_CLIENT(*args, **kwargs)

    monkeypatch.setattr(dependencies.httpx, "AsyncClient", factory)


def test_bearer_token_resolves_user(monkeypatch):
    seen = {}

    async def fake_profile(access_token):
        seen["token"] = access_token
        return {"id": "user-123", "email": "user@example.com", "user_metadata": {"full_name": "Jane Doe"}}

    monkeypatch.setattr(dependencies, "get_user_profile", fake_profile)

    response = client.get("/api/github/status", headers={"Authorization": "Bearer abc123"})

    assert response.status_code == 200
    assert response.json() == {"connected": True, "username": "gh-user-123"}
    assert seen["token"] == "abc123"


def test_supabase_user_lookup(monkeypatch):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"id": "user-9", "email": "nine@example.com"})

    _patch_supabase(monkeypatch, handler)

    response = client.get("/api/github/status", headers={"Authorization": "Bearer tok"})

    assert response.status_code == 200
    assert response.json()["username"] == "gh-user-9"
    assert requests[0].url.path == "/auth/v1/user"
    assert requests[0].headers["Authorization"] == "Bearer tok"
    assert requests[0].headers["apikey"] == get_settings().supabase_key


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_token(monkeypatch, status_code):
    _patch_supabase(monkeypatch, lambda request: httpx.Response(status_code, json={}))

    response = client.get("/api/github/status", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 401
    assert response.json()["detail"] == {"code": "unauthorized", "message": "Invalid or expired access token"}


def test_supabase_outage(monkeypatch):
    _patch_supabase(monkeypatch, lambda request: httpx.Response(500, json={}))

    response = client.get("/api/github/status", headers={"Authorization": "Bearer tok"})

    assert response.status_code == 502
    assert response.json()["detail"]["code"] == "upstream_error"


def test_profile_without_id(monkeypatch):
    _patch_supabase(monkeypatch, lambda request: httpx.Response(200, json={"email": "x@example.com"}))

    response = client.get("/api/github/status", headers={"Authorization": "Bearer tok"})

    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Access token missing user id"


def test_empty_bearer_value():
    response = client.get("/api/github/status", headers={"Authorization": "Bearer"})

    assert response.status_code == 401
