"""Tests for the brag/achievement review workflow."""
from unittest.mock import Mock

import pytest

from api.models.review_item_models import BulkReviewUpdate, ReviewItemCreate, ReviewItemUpdate
from conftest import make_query_mock
from core.errors import ConflictError, NotFoundError, ValidationError
from services.review_items_service import (
    AchievementService,
    BragService,
    ReviewItemServiceError,
    items_from_snapshot,
)


def make_service(rows=None, count=None, service_class=BragService):
    client = Mock()
    query = make_query_mock(rows, count)
    client.table.return_value = query
    return service_class(client=client), client, query


def brag_row(**overrides):
    row = {
        "id": "b1",
        "user_id": "u1",
        "type": "commit",
        "title": "Add rate limiter",
        "review_status": "pending",
        "reviewed_at": None,
    }
    row.update(overrides)
    return row


class TestItemsFromSnapshot:
    def test_one_item_per_contribution(self, sample_snapshot):
        items = items_from_snapshot(sample_snapshot)

        assert [i.type.value for i in items] == ["commit", "commit", "pr", "issue", "release"]
        assert items[0].title == "Add rate limiter"
        assert items[0].github_id == "a1"
        assert items[2].github_id == "octo/api#7"
        assert items[4].github_id == "octo/api@v1.0.0"

    def test_invalid_entries_are_skipped(self, sample_snapshot):
        from dataclasses import replace

        broken = replace(sample_snapshot.commits[0], date="not a date")
        snapshot = replace(sample_snapshot, commits=(broken,), pull_requests=(), issues=(), releases=())

        assert items_from_snapshot(snapshot) == []


class TestList:
    def test_excludes_archived_by_default(self):
        service, client, query = make_service([brag_row()], count=12)

        result = service.list("u1", limit=10, offset=20)

        client.table.assert_called_with("brags")
        query.neq.assert_called_once_with("review_status", "archived")
        query.range.assert_called_once_with(20, 29)
        assert result == {"items": [brag_row()], "total": 12}

    def test_filters(self):
        service, _, query = make_service([])

        service.list("u1", review_status="archived", item_type="pr")

        query.eq.assert_any_call("review_status", "archived")
        query.eq.assert_any_call("type", "pr")
        query.neq.assert_not_called()

    def test_achievements_use_their_own_table(self):
        service, client, _ = make_service([], service_class=AchievementService)

        service.list("u1")

        client.table.assert_called_with("achievements")


class TestCreate:
    def test_duplicate_returns_existing(self):
        service, _, query = make_service([brag_row()])
        # upsert ignores the duplicate and returns nothing
        query.execute.side_effect = [Mock(data=[]), Mock(data=[brag_row()])]
        item = ReviewItemCreate(
            type="commit",
            title="Add rate limiter",
            date="2024-03-10T12:00:00Z",
            repository="octo/api",
            url="https://github.com/octo/api/commit/a1",
            githubId="a1",
            githubType="commit",
        )

        row = service.create("u1", item)

        assert row == brag_row()
        upserted = query.upsert.call_args[0][0]
        assert upserted["review_status"] == "pending"
        assert query.upsert.call_args.kwargs["on_conflict"] == "user_id,github_id,github_type"

    def test_sync_counts_new_rows(self, sample_snapshot):
        service, _, query = make_service([{"id": "x"}, {"id": "y"}])

        result = service.sync_from_contributions("u1", sample_snapshot)

        assert result == {"created": 2, "skipped": 3}
        assert len(query.upsert.call_args[0][0]) == 5


class TestReview:
    def test_update_marks_reviewed(self):
        service, _, query = make_service([brag_row()])

        service.update_review("u1", "b1", ReviewItemUpdate(relevance=4, resumeSectionId=""))

        values = query.update.call_args[0][0]
        assert values["relevance"] == 4
        assert values["resume_section_id"] is None
        assert values["review_status"] == "reviewed"
        assert "reviewed_at" in values

    def test_missing_item(self):
        service, _, _ = make_service([])

        with pytest.raises(NotFoundError):
            service.update_review("u1", "nope", ReviewItemUpdate(relevance=1))

    def test_archive(self):
        service, _, query = make_service([brag_row()])

        service.archive("u1", "b1")

        assert query.update.call_args[0][0]["review_status"] == "archived"

    @pytest.mark.parametrize("reviewed_at,expected", [(None, "pending"), ("2024-01-01T00:00:00Z", "reviewed")])
    def test_unarchive_restores_status(self, reviewed_at, expected):
        service, _, query = make_service([brag_row(review_status="archived", reviewed_at=reviewed_at)])

        service.unarchive("u1", "b1")

        assert query.update.call_args[0][0]["review_status"] == expected

    def test_unarchive_requires_archived(self):
        service, _, _ = make_service([brag_row()])

        with pytest.raises(ConflictError):
            service.unarchive("u1", "b1")

    def test_delete(self):
        service, _, query = make_service([brag_row()])

        service.delete("u1", "b1")

        query.delete.assert_called_once()


class TestBulkAndStats:
    def test_bulk_update(self):
        service, _, query = make_service([{"id": "b1"}, {"id": "b2"}])

        result = service.bulk_update("u1", BulkReviewUpdate(ids=["b1", "b2", "b1"], techTags=["python"]))

        assert result == {"updated": 2}
        values = query.update.call_args[0][0]
        assert values["tech_tags"] == ["python"]
        assert values["review_status"] == "reviewed"

    def test_bulk_update_foreign_ids(self):
        service, _, _ = make_service([{"id": "b1"}])

        with pytest.raises(NotFoundError):
            service.bulk_update("u1", BulkReviewUpdate(ids=["b1", "other"], relevance=2))

    def test_bulk_update_requires_ids(self):
        service, _, _ = make_service([])

        with pytest.raises(ValidationError):
            service.bulk_update("u1", BulkReviewUpdate(ids=[]))

    def test_stats(self):
        rows = [{"review_status": s} for s in ("pending", "pending", "reviewed", "archived", "bogus")]
        service, _, _ = make_service(rows)

        stats = service.stats("u1")

        assert (stats.pending, stats.reviewed, stats.archived, stats.total) == (2, 1, 1, 5)

    def test_database_failure(self):
        client = Mock()
        client.table.side_effect = Exception("boom")
        service = BragService(client=client)

        with pytest.raises(ReviewItemServiceError):
            service.stats("u1")
