"""Brags and achievements: GitHub contributions a user reviews for their resume.

Both tables share the same columns and lifecycle::

    pending --update_review--> reviewed --archive--> archived
    archived --unarchive--> reviewed (if ever reviewed) or pending

Rows are unique on ``(user_id, github_id, github_type)``; creating the same
contribution twice returns the existing row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from analyzer.models import ContributionSnapshot
from api.models.review_item_models import (
    BulkReviewUpdate,
    ReviewItemCreate,
    ReviewItemUpdate,
    ReviewStats,
    ReviewStatus,
)
from core.errors import AppError, ConflictError, NotFoundError, ValidationError

from .database import SupabaseService

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
UNIQUE_KEY = "user_id,github_id,github_type"
REVIEW_FIELDS = ("relevance", "resume_section_id", "tech_tags", "custom_description")


class ReviewItemServiceError(AppError):
    """Raised when brag/achievement persistence fails."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _item(**values: Any) -> Optional[ReviewItemCreate]:
    try:
        return ReviewItemCreate(**values)
    except PydanticValidationError as exc:
        logger.warning("Skipping %s %s: %s", values.get("type"), values.get("github_id"), exc.errors()[0]["msg"])
        return None


def items_from_snapshot(snapshot: ContributionSnapshot) -> List[ReviewItemCreate]:
    """One pending item per commit, PR, issue and release in the snapshot."""
    candidates = []
    for commit in snapshot.commits:
        first_line = commit.message.splitlines()[0] if commit.message.strip() else ""
        candidates.append(
            _item(
                type="commit",
                title=first_line[:255] or commit.sha,
                description=commit.message,
                date=commit.date,
                repository=commit.repository,
                url=commit.url or commit.repository,
                github_id=commit.sha,
                github_type="commit",
            )
        )
    for pr in snapshot.pull_requests:
        candidates.append(
            _item(
                type="pr",
                title=pr.title or f"PR #{pr.number}",
                description=pr.body,
                date=pr.created_at,
                repository=pr.repository,
                url=pr.url or pr.repository,
                github_id=f"{pr.repository}#{pr.number}",
                github_type="pr",
            )
        )
    for issue in snapshot.issues:
        candidates.append(
            _item(
                type="issue",
                title=issue.title or f"Issue #{issue.number}",
                date=issue.created_at,
                repository=issue.repository,
                url=issue.url or issue.repository,
                github_id=f"{issue.repository}#{issue.number}",
                github_type="issue",
            )
        )
    for release in snapshot.releases:
        candidates.append(
            _item(
                type="release",
                title=release.name or release.tag_name,
                description=release.body,
                date=release.created_at,
                repository=release.repository,
                url=release.url or release.repository,
                github_id=f"{release.repository}@{release.tag_name}",
                github_type="release",
            )
        )
    return [item for item in candidates if item is not None]


class ReviewItemService(SupabaseService):
    """CRUD and review workflow for one review-item table."""

    error_class = ReviewItemServiceError
    table_name = ""
    label = "Item"

    def __init__(self, client: Optional[Client] = None) -> None:
        super().__init__(client)

    def _table(self):
        return self.client.table(self.table_name)

    def _fail(self, action: str, exc: Exception) -> ReviewItemServiceError:
        return ReviewItemServiceError(f"Failed to {action} {self.table_name}: {exc}")

    def _row_to_create(self, user_id: str, item: ReviewItemCreate) -> Dict[str, Any]:
        data = item.model_dump(mode="json")
        data.update({"user_id": user_id, "review_status": ReviewStatus.PENDING.value})
        return data

    def list(
        self,
        user_id: str,
        *,
        review_status: Optional[ReviewStatus] = None,
        item_type: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Items ordered by date. Archived items only appear when asked for."""
        try:
            query = self._table().select("*", count="exact").eq("user_id", user_id)
            if review_status:
                query = query.eq("review_status", ReviewStatus(review_status).value)
            else:
                query = query.neq("review_status", ReviewStatus.ARCHIVED.value)
            if item_type:
                query = query.eq("type", item_type)
            response = query.order("date").range(offset, offset + max(limit, 1) - 1).execute()
        except Exception as exc:
            raise self._fail("list", exc) from exc
        rows = self._rows(response)
        total = getattr(response, "count", None)
        return {"items": rows, "total": total if total is not None else len(rows)}

    def get(self, user_id: str, item_id: str) -> Dict[str, Any]:
        try:
            response = self._table().select("*").eq("id", item_id).eq("user_id", user_id).limit(1).execute()
        except Exception as exc:
            raise self._fail("load", exc) from exc
        row = self._first(response)
        if not row:
            raise NotFoundError(f"{self.label} not found or access denied")
        return row

    def _find_existing(self, user_id: str, github_id: str, github_type: str) -> Optional[Dict[str, Any]]:
        response = (
            self._table()
            .select("*")
            .eq("user_id", user_id)
            .eq("github_id", github_id)
            .eq("github_type", github_type)
            .limit(1)
            .execute()
        )
        return self._first(response)

    def create(self, user_id: str, item: ReviewItemCreate) -> Dict[str, Any]:
        """Insert a pending item, or return the row already stored for it."""
        row = self._row_to_create(user_id, item)
        try:
            if not item.github_id:
                return self._first(self._table().insert(row).execute()) or row
            created = self._first(
                self._table().upsert(row, on_conflict=UNIQUE_KEY, ignore_duplicates=True).execute()
            )
            if created:
                return created
            return self._find_existing(user_id, item.github_id, item.github_type) or row
        except Exception as exc:
            raise self._fail("create", exc) from exc

    def sync_from_contributions(self, user_id: str, snapshot: ContributionSnapshot) -> Dict[str, int]:
        """Create pending items for every contribution not seen before."""
        rows = [self._row_to_create(user_id, item) for item in items_from_snapshot(snapshot)]
        if not rows:
            return {"created": 0, "skipped": 0}
        try:
            response = self._table().upsert(rows, on_conflict=UNIQUE_KEY, ignore_duplicates=True).execute()
        except Exception as exc:
            raise self._fail("sync", exc) from exc
        created = len(self._rows(response))
        logger.info("Synced %s for %s: %d new of %d", self.table_name, user_id, created, len(rows))
        return {"created": created, "skipped": len(rows) - created}

    def update_review(self, user_id: str, item_id: str, update: ReviewItemUpdate) -> Dict[str, Any]:
        self.get(user_id, item_id)
        values: Dict[str, Any] = update.model_dump(exclude_unset=True)
        if "resume_section_id" in values:
            values["resume_section_id"] = values["resume_section_id"] or None
        if "custom_description" in values:
            values["custom_description"] = values["custom_description"] or None
        if any(field in values for field in REVIEW_FIELDS):
            values["review_status"] = ReviewStatus.REVIEWED.value
            values["reviewed_at"] = _now()
        return self._update(user_id, item_id, values)

    def _update(self, user_id: str, item_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        values["updated_at"] = _now()
        try:
            response = self._table().update(values).eq("id", item_id).eq("user_id", user_id).execute()
        except Exception as exc:
            raise self._fail("update", exc) from exc
        row = self._first(response)
        if not row:
            raise NotFoundError(f"{self.label} not found or access denied")
        return row

    def archive(self, user_id: str, item_id: str) -> Dict[str, Any]:
        self.get(user_id, item_id)
        return self._update(user_id, item_id, {"review_status": ReviewStatus.ARCHIVED.value})

    def unarchive(self, user_id: str, item_id: str) -> Dict[str, Any]:
        existing = self.get(user_id, item_id)
        if existing.get("review_status") != ReviewStatus.ARCHIVED.value:
            raise ConflictError(f"{self.label} is not archived")
        status = ReviewStatus.REVIEWED if existing.get("reviewed_at") else ReviewStatus.PENDING
        return self._update(user_id, item_id, {"review_status": status.value})

    def delete(self, user_id: str, item_id: str) -> None:
        self.get(user_id, item_id)
        try:
            self._table().delete().eq("id", item_id).eq("user_id", user_id).execute()
        except Exception as exc:
            raise self._fail("delete", exc) from exc

    def stats(self, user_id: str) -> ReviewStats:
        try:
            response = self._table().select("review_status").eq("user_id", user_id).execute()
        except Exception as exc:
            raise self._fail("count", exc) from exc
        rows = self._rows(response)
        counts = {status.value: 0 for status in ReviewStatus}
        for row in rows:
            status = row.get("review_status")
            if status in counts:
                counts[status] += 1
        return ReviewStats(total=len(rows), **counts)

    def bulk_update(self, user_id: str, update: BulkReviewUpdate) -> Dict[str, int]:
        ids = list(dict.fromkeys(update.ids))
        if not ids:
            raise ValidationError("ids must be a non-empty array")

        try:
            owned = self._rows(self._table().select("id").eq("user_id", user_id).in_("id", ids).execute())
        except Exception as exc:
            raise self._fail("load", exc) from exc
        if len({row["id"] for row in owned}) != len(ids):
            raise NotFoundError(f"Some {self.table_name} not found or access denied")

        values: Dict[str, Any] = update.model_dump(exclude_unset=True, exclude={"ids"}, mode="json")
        if "resume_section_id" in values:
            values["resume_section_id"] = values["resume_section_id"] or None
        status = values.get("review_status")
        if status is not None:
            if status == ReviewStatus.REVIEWED.value:
                values["reviewed_at"] = _now()
        elif any(field in values for field in ("relevance", "resume_section_id", "tech_tags")):
            values["review_status"] = ReviewStatus.REVIEWED.value
            values["reviewed_at"] = _now()
        values["updated_at"] = _now()

        try:
            self._table().update(values).eq("user_id", user_id).in_("id", ids).execute()
        except Exception as exc:
            raise self._fail("update", exc) from exc
        return {"updated": len(ids)}


class BragService(ReviewItemService):
    table_name = "brags"
    label = "Brag"


class AchievementService(ReviewItemService):
    table_name = "achievements"
    label = "Achievement"
