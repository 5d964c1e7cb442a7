"""
Tests for Project API endpoints.

Tests POST /api/projects, GET /api/projects, GET/PATCH/DELETE /api/projects/{project_id}
Run with: pytest tests/test_projects_api.py -v
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from main import app
from analyzer.models import Repository
from api.dependencies import AuthContext, get_auth_context
from api.projects_routes import get_projects_service
from core.errors import NotFoundError
from services.projects_service import ProjectsService


client = TestClient(app)

PROJECT = {
    "id": "proj-1",
    "user_id": "test-user-123",
    "repository_name": "octo/api",
    "project_name": "API",
    "is_active": True,
}


async def _override_auth() -> AuthContext:
    return AuthContext(user_id="test-user-123", access_token="test-token")


@pytest.fixture
def projects():
    service = Mock(spec=ProjectsService)
    app.dependency_overrides[get_auth_context] = _override_auth
    app.dependency_overrides[get_projects_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


class TestCreateProject:
    """Tests for POST /api/projects"""

    def test_single_repository(self, projects):
        projects.create.return_value = PROJECT

        response = client.post(
            "/api/projects",
            json={
                "repository": {"name": "octo/api", "url": "https://github.com/octo/api", "language": "Python"},
                "projectName": "API",
                "notes": "Main service",
            },
        )

        assert response.status_code == 201
        assert response.json() == {"success": True, "data": PROJECT}
        user_id, repository = projects.create.call_args.args
        assert user_id == "test-user-123"
        assert isinstance(repository, Repository)
        assert repository.language == "Python"
        assert projects.create.call_args.kwargs == {"project_name": "API", "notes": "Main service"}

    def test_many_repositories(self, projects):
        projects.create_many.return_value = [PROJECT, {**PROJECT, "id": "proj-2"}]

        response = client.post(
            "/api/projects",
            json={
                "repositories": [{"name": "octo/api"}, {"name": "octo/web"}],
                "projectNames": {"octo/web": "Web"},
            },
        )

        assert response.status_code == 201
        assert len(response.json()["data"]) == 2
        _, repositories, names = projects.create_many.call_args.args
        assert [r.name for r in repositories] == ["octo/api", "octo/web"]
        assert names == {"octo/web": "Web"}
        projects.create.assert_not_called()

    def test_requires_a_repository(self, projects):
        response = client.post("/api/projects", json={"projectName": "Nothing"})

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "repository or repositories required"

    def test_repository_name_required(self, projects):
        response = client.post("/api/projects", json={"repository": {"name": ""}})

        assert response.status_code == 422
        projects.create.assert_not_called()


class TestReadUpdateDelete:
    def test_list_active(self, projects):
        projects.list_active.return_value = [PROJECT]

        response = client.get("/api/projects")

        assert response.json() == {"success": True, "data": [PROJECT]}
        projects.list_active.assert_called_once_with("test-user-123")

    def test_get_missing(self, projects):
        projects.get.side_effect = NotFoundError("Project not found")

        response = client.get("/api/projects/missing")

        assert response.status_code == 404

    def test_patch_only_sends_given_fields(self, projects):
        projects.update.return_value = {**PROJECT, "notes": "Updated"}

        response = client.patch("/api/projects/proj-1", json={"notes": "Updated"})

        assert response.status_code == 200
        projects.update.assert_called_once_with("test-user-123", "proj-1", {"notes": "Updated"})

    def test_delete_deactivates(self, projects):
        response = client.delete("/api/projects/proj-1")

        assert response.json() == {"success": True}
        projects.deactivate.assert_called_once_with("test-user-123", "proj-1")
