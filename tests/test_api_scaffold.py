"""Smoke tests for the application shell: health checks, auth, error translation and rate limits."""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

# Ensure backend/src is on path for imports
backend_src = Path(__file__).parent.parent / "backend" / "src"
sys.path.insert(0, str(backend_src))

from main import ROUTERS, app, create_app  # type: ignore
from api.dependencies import AuthContext, get_auth_context, get_rate_limiters
from api.github_routes import get_github_service
from core.errors import ConfigurationError, DecryptionError, NotFoundError, UpstreamError
from services.github_service import GitHubService
from services.rate_limit import RateLimiters


client = TestClient(app)


async def _override_auth() -> AuthContext:
    return AuthContext(user_id="test-user-123", access_token="test-token", email="dev@example.com")


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def github_service():
    service = Mock(spec=GitHubService)
    app.dependency_overrides[get_auth_context] = _override_auth
    app.dependency_overrides[get_github_service] = lambda: service
    return service


def test_health():
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] in {"ok", "healthy"}


def test_root():
    assert client.get("/").json()["status"] == "healthy"


def test_all_routers_mounted():
    paths = {route.path for route in app.routes}
    for prefix in ("/api/github", "/api/openai", "/api/llm", "/api/agents", "/api/brags",
                   "/api/achievements", "/api/projects", "/api/resume", "/api/snapshots"):
        assert any(path.startswith(prefix) for path in paths), prefix
    assert len(ROUTERS) == 9


def test_create_app_is_independent():
    other = create_app()
    assert other is not app
    assert isinstance(other.state.rate_limiters, RateLimiters)


class TestAuthentication:
    def test_missing_header(self):
        res = client.get("/api/github/status")

        assert res.status_code == 401
        assert res.json()["detail"]["code"] == "unauthorized"

    def test_not_bearer(self):
        res = client.get("/api/github/status", headers={"Authorization": "Basic abc"})

        assert res.status_code == 401
        assert "Bearer" in res.json()["detail"]["message"]


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "error,status_code,code",
        [
            (NotFoundError("No contributions found"), 404, "not_found"),
            (ConfigurationError("GitHub token not found"), 400, "configuration_error"),
            (DecryptionError("Failed to decrypt token"), 401, "decryption_error"),
            (UpstreamError("GitHub unavailable"), 502, "upstream_error"),
        ],
    )
    def test_app_errors_become_json(self, github_service, error, status_code, code):
        github_service.get_contributions.side_effect = error

        res = client.get("/api/github/contributions")

        assert res.status_code == status_code
        assert res.json() == {"detail": {"code": code, "message": error.message}}


class TestRateLimiting:
    def test_scan_is_rate_limited(self, github_service):
        limiters = RateLimiters.create(api_per_minute=1, analysis_per_minute=1)
        app.dependency_overrides[get_rate_limiters] = lambda: limiters
        github_service.scan.return_value = {"contributions": {}, "message": "ok"}

        first = client.post("/api/github/scan")
        second = client.post("/api/github/scan")

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["detail"]["code"] == "rate_limited"
        assert second.json()["detail"]["remaining"] == 0
        github_service.scan.assert_called_once_with("test-user-123")
        assert limiters.api.store.get("dev@example.com").count == 1
