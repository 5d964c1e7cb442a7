# Unit tests for LLM API routes

import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock
import sys
from pathlib import Path

backend_src = Path(__file__).parent.parent / "backend" / "src"
sys.path.insert(0, str(backend_src))

from main import app
from analyzer.models import ContributionSnapshot
from api.dependencies import AuthContext, get_auth_context, get_rate_limiters
import api.llm_routes as routes
from core.errors import ConfigurationError, DecryptionError, NotFoundError, UpstreamError, ValidationError
from services.github_service import CachedContributions, GitHubService
from services.llm_service import LLMService
from services.rate_limit import RateLimiters
from services.resume_service import ResumeService
from services.user_service import UserService


async def _override_auth() -> AuthContext:
    return AuthContext(user_id="test-user-123", access_token="test-token", email="dev@example.com")


class TestLLMRoutes:
    """Shared fixtures for the LLM route tests."""

    @pytest.fixture
    def client(self):
        return TestClient(app)

    @pytest.fixture
    def limiters(self):
        return RateLimiters.create(api_per_minute=100, analysis_per_minute=100)

    @pytest.fixture
    def services(self, limiters, sample_snapshot):
        users = Mock(spec=UserService)
        llm = Mock(spec=LLMService)
        github = Mock(spec=GitHubService)
        resumes = Mock(spec=ResumeService)
        github.get_contributions.return_value = CachedContributions(
            id="gc-1", snapshot=sample_snapshot, last_scanned="2024-06-02T00:00:00Z", scan_count=1
        )

        app.dependency_overrides[get_auth_context] = _override_auth
        app.dependency_overrides[get_rate_limiters] = lambda: limiters
        app.dependency_overrides[routes.get_user_service] = lambda: users
        app.dependency_overrides[routes.get_llm_service] = lambda: llm
        app.dependency_overrides[routes.get_github_service] = lambda: github
        app.dependency_overrides[routes.get_resume_service] = lambda: resumes
        yield {"users": users, "llm": llm, "github": github, "resumes": resumes}
        app.dependency_overrides.clear()


class TestOpenAIKeyEndpoints(TestLLMRoutes):
    """Test cases for /api/openai/key."""

    def test_save_key(self, client, services):
        response = client.post("/api/openai/key", json={"apiKey": "sk-test123"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "OpenAI API key saved successfully"}
        services["llm"].save_key.assert_called_once_with(
            "test-user-123", "sk-test123", email="dev@example.com", name=None
        )

    def test_save_invalid_key(self, client, services):
        services["llm"].save_key.side_effect = ValidationError("Invalid OpenAI API key")

        response = client.post("/api/openai/key", json={"apiKey": "sk-bad"})

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "Invalid OpenAI API key"

    def test_save_requires_key(self, client, services):
        response = client.post("/api/openai/key", json={"apiKey": ""})

        assert response.status_code == 422
        services["llm"].save_key.assert_not_called()

    def test_save_attempts_are_limited(self, client, services):
        statuses = [client.post("/api/openai/key", json={"apiKey": "sk-test123"}).status_code for _ in range(5)]

        response = client.post("/api/openai/key", json={"apiKey": "sk-test123"})

        assert statuses == [200] * 5
        assert response.status_code == 429
        assert response.json()["detail"]["code"] == "rate_limited"
        assert services["llm"].save_key.call_count == 5

    @pytest.mark.parametrize("has_key", [True, False])
    def test_key_status(self, client, services, has_key):
        services["users"].has_openai_key.return_value = has_key

        response = client.get("/api/openai/key")

        assert response.status_code == 200
        assert response.json() == {"hasKey": has_key}

    def test_delete_key(self, client, services):
        response = client.delete("/api/openai/key")

        assert response.status_code == 200
        assert response.json()["success"] is True
        services["users"].delete_openai_key.assert_called_once_with("test-user-123")


class TestAnalyzeEndpoint(TestLLMRoutes):
    """Test cases for /api/llm/analyze."""

    def test_uses_posted_contributions(self, client, services, sample_snapshot):
        services["llm"].analyze.return_value = {"analysis": "Great work", "estimated_tokens": 120}

        response = client.post("/api/llm/analyze", json={"contributions": sample_snapshot.to_dict()})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {"analysis": "Great work"},
            "meta": {"estimatedTokens": 120, "remaining": 99},
        }
        user_id, snapshot = services["llm"].analyze.call_args.args
        assert user_id == "test-user-123"
        assert isinstance(snapshot, ContributionSnapshot)
        assert snapshot.total_contributions == sample_snapshot.total_contributions
        services["github"].get_contributions.assert_not_called()

    def test_falls_back_to_cached_scan(self, client, services, sample_snapshot):
        services["llm"].analyze.return_value = {"analysis": "ok", "estimated_tokens": 1}

        response = client.post("/api/llm/analyze", json={})

        assert response.status_code == 200
        services["github"].get_contributions.assert_called_once_with("test-user-123")
        assert services["llm"].analyze.call_args.args[1] is sample_snapshot

    def test_never_scanned(self, client, services):
        services["github"].get_contributions.side_effect = NotFoundError("No contributions found")

        response = client.post("/api/llm/analyze", json={})

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (ConfigurationError("OpenAI API key not configured"), 400),
            (DecryptionError("Failed to decrypt OpenAI API key"), 401),
            (UpstreamError("OpenAI request failed"), 502),
        ],
    )
    def test_service_errors(self, client, services, error, status_code):
        services["llm"].analyze.side_effect = error

        response = client.post("/api/llm/analyze", json={})

        assert response.status_code == status_code
        assert response.json()["detail"]["message"] == error.message

    def test_analysis_rate_limit(self, client, services):
        limiters = RateLimiters.create(api_per_minute=100, analysis_per_minute=1)
        app.dependency_overrides[get_rate_limiters] = lambda: limiters
        services["llm"].analyze.return_value = {"analysis": "ok", "estimated_tokens": 1}

        first = client.post("/api/llm/analyze", json={})
        second = client.post("/api/llm/analyze", json={})

        assert first.json()["meta"]["remaining"] == 0
        assert second.status_code == 429
        assert services["llm"].analyze.call_count == 1


class TestSummarizeEndpoint(TestLLMRoutes):
    def test_passes_summary_and_tone(self, client, services):
        services["llm"].summarize.return_value = {"summary": "Backend engineer", "estimated_tokens": 40}

        response = client.post(
            "/api/llm/summarize",
            json={"currentSummary": "I write code", "tone": "technical"},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"summary": "Backend engineer"}
        args = services["llm"].summarize.call_args.args
        assert args[0] == "test-user-123"
        assert args[2:] == ("I write code", "technical")

    def test_default_tone(self, client, services):
        services["llm"].summarize.return_value = {"summary": "s", "estimated_tokens": 1}

        client.post("/api/llm/summarize", json={})

        assert services["llm"].summarize.call_args.args[3] == "hybrid"


class TestCompareEndpoint(TestLLMRoutes):
    def test_explicit_resume(self, client, services):
        services["llm"].compare.return_value = {"comparison": "Add metrics", "estimated_tokens": 10}

        response = client.post("/api/llm/compare", json={"existingResume": "My resume"})

        assert response.status_code == 200
        assert response.json()["data"]["comparison"] == "Add metrics"
        assert services["llm"].compare.call_args.args[:2] == ("test-user-123", "My resume")
        services["resumes"].active_resume_text.assert_not_called()

    def test_uses_active_resume(self, client, services):
        services["resumes"].active_resume_text.return_value = "Stored resume"
        services["llm"].compare.return_value = {"comparison": "c", "estimated_tokens": 1}

        client.post("/api/llm/compare", json={})

        assert services["llm"].compare.call_args.args[1] == "Stored resume"
