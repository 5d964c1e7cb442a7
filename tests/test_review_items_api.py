"""Route tests for /api/brags and /api/achievements."""
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from main import app
import api.review_item_routes as review_routes
from api.dependencies import AuthContext, get_auth_context
from api.models.review_item_models import BulkReviewUpdate, ReviewItemCreate, ReviewItemUpdate, ReviewStats
from api.review_item_routes import achievements_router, brags_router
from conftest import make_query_mock
from core.errors import ConflictError, NotFoundError, ValidationError
from services.github_service import CachedContributions
from services.review_items_service import AchievementService, BragService

client = TestClient(app)

BRAG = {
    "id": "brag-1",
    "user_id": "test-user-123",
    "type": "pr",
    "title": "Streaming analysis",
    "repository": "octo/api",
    "review_status": "pending",
}

NEW_BRAG = {
    "type": "pr",
    "title": "Streaming analysis",
    "date": "2024-04-02T10:00:00Z",
    "repository": "octo/api",
    "url": "https://github.com/octo/api/pull/7",
    "githubId": "7",
    "githubType": "pull_request",
}


async def _override_auth() -> AuthContext:
    return AuthContext(user_id="test-user-123", access_token="test-token")


@pytest.fixture(autouse=True)
def override_auth():
    app.dependency_overrides[get_auth_context] = _override_auth
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def brags():
    service = Mock(spec=BragService)
    app.dependency_overrides[brags_router.get_service] = lambda: service
    return service


class TestListAndCreate:
    def test_list_with_filters(self, brags):
        brags.list.return_value = {"items": [BRAG], "total": 1}

        response = client.get("/api/brags?reviewStatus=pending&type=pr&limit=10&offset=5")

        assert response.status_code == 200
        assert response.json() == {"brags": [BRAG], "total": 1, "limit": 10, "offset": 5}
        brags.list.assert_called_once()
        kwargs = brags.list.call_args.kwargs
        assert kwargs["review_status"].value == "pending"
        assert kwargs["item_type"] == "pr"
        assert (kwargs["limit"], kwargs["offset"]) == (10, 5)

    def test_list_rejects_unknown_status(self, brags):
        response = client.get("/api/brags?reviewStatus=done")

        assert response.status_code == 422
        brags.list.assert_not_called()

    def test_create(self, brags):
        brags.create.return_value = BRAG

        response = client.post("/api/brags", json=NEW_BRAG)

        assert response.status_code == 201
        assert response.json() == {"success": True, "brag": BRAG}
        user_id, item = brags.create.call_args.args
        assert user_id == "test-user-123"
        assert isinstance(item, ReviewItemCreate)
        assert item.github_type == "pull_request"

    def test_create_requires_title(self, brags):
        response = client.post("/api/brags", json={**NEW_BRAG, "title": ""})

        assert response.status_code == 422
        brags.create.assert_not_called()


class TestReviewWorkflow:
    def test_stats(self, brags):
        brags.stats.return_value = ReviewStats(pending=2, reviewed=1, archived=0, total=3)

        response = client.get("/api/brags/stats")

        assert response.json() == {"pending": 2, "reviewed": 1, "archived": 0, "total": 3}

    def test_get_missing(self, brags):
        brags.get.side_effect = NotFoundError("Brag not found or access denied")

        response = client.get("/api/brags/nope")

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Brag not found or access denied"

    def test_update_review(self, brags):
        brags.update_review.return_value = {**BRAG, "review_status": "reviewed", "relevance": 4}

        response = client.patch("/api/brags/brag-1", json={"relevance": 4, "techTags": ["Python"]})

        assert response.status_code == 200
        assert response.json()["brag"]["review_status"] == "reviewed"
        user_id, item_id, update = brags.update_review.call_args.args
        assert item_id == "brag-1"
        assert isinstance(update, ReviewItemUpdate)
        assert update.tech_tags == ["Python"]

    def test_relevance_out_of_range(self, brags):
        response = client.patch("/api/brags/brag-1", json={"relevance": 9})

        assert response.status_code == 422

    def test_delete(self, brags):
        response = client.delete("/api/brags/brag-1")

        assert response.json() == {"success": True}
        brags.delete.assert_called_once_with("test-user-123", "brag-1")

    def test_archive(self, brags):
        brags.archive.return_value = {**BRAG, "review_status": "archived"}

        response = client.post("/api/brags/brag-1/archive")

        assert response.json()["brag"]["review_status"] == "archived"

    def test_unarchive_conflict(self, brags):
        brags.unarchive.side_effect = ConflictError("Brag is not archived")

        response = client.post("/api/brags/brag-1/unarchive")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "conflict"


class TestBulkAndSync:
    def test_bulk_update(self, brags):
        brags.bulk_update.return_value = {"updated": 2}

        response = client.patch("/api/brags/bulk", json={"ids": ["a", "b"], "reviewStatus": "archived"})

        assert response.json() == {"success": True, "updated": 2}
        update = brags.bulk_update.call_args.args[1]
        assert isinstance(update, BulkReviewUpdate)
        assert update.review_status.value == "archived"

    def test_bulk_update_empty_ids(self, brags):
        brags.bulk_update.side_effect = ValidationError("ids must be a non-empty array")

        response = client.patch("/api/brags/bulk", json={"ids": []})

        assert response.status_code == 422

    def test_sync_from_cached_scan(self, monkeypatch, sample_snapshot, mock_supabase_client):
        mock_supabase_client.table.return_value = make_query_mock([{"id": "x"}, {"id": "y"}])
        service = BragService(client=mock_supabase_client)
        github = Mock()
        github.get_contributions.return_value = CachedContributions(
            id="gc-1", snapshot=sample_snapshot, last_scanned=None, scan_count=1
        )
        github_class = Mock(return_value=github)
        monkeypatch.setattr(review_routes, "GitHubService", github_class)
        app.dependency_overrides[brags_router.get_service] = lambda: service

        response = client.post("/api/brags/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["created"] == 2
        assert body["created"] + body["skipped"] == sample_snapshot.total_contributions
        github_class.assert_called_once_with(client=mock_supabase_client)
        github.get_contributions.assert_called_once_with("test-user-123")


class TestAchievements:
    def test_shares_layout_with_own_key(self):
        service = Mock(spec=AchievementService)
        service.get.return_value = {"id": "ach-1"}
        app.dependency_overrides[achievements_router.get_service] = lambda: service

        response = client.get("/api/achievements/ach-1")

        assert response.status_code == 200
        assert response.json() == {"achievement": {"id": "ach-1"}}
