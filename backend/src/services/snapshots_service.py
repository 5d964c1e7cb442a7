"""Snapshots freeze a user's resume, contributions and analysis at a point in time.

Creating a snapshot deactivates every earlier one, so at most one snapshot
per user is active.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from supabase import Client

from analyzer.models import ContributionSnapshot
from analyzer.pipeline import AnalysisContext, ProgressChannel
from core.errors import AppError, NotFoundError, ValidationError

from .agents_service import AgentsService, AnalysisOptions
from .database import SupabaseService
from .github_service import CONTRIBUTIONS_TABLE
from .resume_service import ResumeService
from .user_service import UserService

logger = logging.getLogger(__name__)

SNAPSHOTS_TABLE = "user_snapshots"
UPDATABLE_FIELDS = ("title", "github_analysis", "is_active")


class SnapshotsServiceError(AppError):
    """Raised when snapshot persistence fails."""


def default_title(now: datetime) -> str:
    """``Snapshot Mar 5, 2025``"""
    return f"Snapshot {now:%b} {now.day}, {now.year}"


def _contribution_data(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "userId": row.get("user_id"),
        "data": row.get("data"),
        "lastScanned": row.get("last_scanned"),
        "scanCount": row.get("scan_count"),
        "expiresAt": row.get("expires_at"),
        "createdAt": row.get("created_at"),
    }


class SnapshotsService(SupabaseService):
    error_class = SnapshotsServiceError

    def __init__(
        self,
        client: Optional[Client] = None,
        user_service: Optional[UserService] = None,
        resume_service: Optional[ResumeService] = None,
        agents_service: Optional[AgentsService] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        super().__init__(client)
        self.users = user_service or UserService(client=self.client)
        self.resumes = resume_service or ResumeService(client=self.client, user_service=self.users)
        self.agents = agents_service or AgentsService(user_service=self.users)
        self._now = clock

    def _contribution_row(self, user_id: str, contribution_id: Optional[str]) -> Optional[Dict[str, Any]]:
        query = self.client.table(CONTRIBUTIONS_TABLE).select("*").eq("user_id", user_id)
        if contribution_id:
            query = query.eq("id", contribution_id)
        else:
            query = query.order("created_at", desc=True)
        try:
            row = self._first(query.limit(1).execute())
        except Exception as exc:
            raise SnapshotsServiceError(f"Failed to load contributions for {user_id}: {exc}") from exc
        if contribution_id and not row:
            raise NotFoundError("GitHub contribution not found")
        return row

    async def _analysis(
        self,
        user_id: str,
        user: Dict[str, Any],
        data: Dict[str, Any],
        progress: Optional[ProgressChannel] = None,
    ) -> Dict[str, Any]:
        context = AnalysisContext.from_profile(
            user.get("seniority"), user.get("focus"), user.get("years_of_experience")
        )
        result = await self.agents.analyze(
            user_id,
            ContributionSnapshot.from_dict(data),
            AnalysisOptions(context=context),
            progress=progress,
        )
        return {
            "consolidatedReport": result.consolidated_report.to_dict(),
            "metadata": result.metadata,
        }

    async def create(
        self,
        user_id: str,
        *,
        resume_id: Optional[str] = None,
        github_contribution_id: Optional[str] = None,
        trigger_analysis: bool = False,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Freeze the current resume and contributions into a new active snapshot.

        The latest scan is used when no contribution id is given. A failed
        analysis is logged and the snapshot is stored without one.
        """
        user = await asyncio.to_thread(self.users.require_user, user_id)
        resume_data = await asyncio.to_thread(self.resumes.get, user_id, resume_id) if resume_id else None
        contribution = await asyncio.to_thread(self._contribution_row, user_id, github_contribution_id)

        analysis = None
        if trigger_analysis and contribution and contribution.get("data"):
            try:
                analysis = await self._analysis(user_id, user, contribution["data"])
            except AppError as exc:
                logger.error("Failed to analyze GitHub contributions for snapshot: %s", exc)

        row = {
            "user_id": user_id,
            "resume_id": resume_id,
            "github_contribution_id": (contribution or {}).get("id") or github_contribution_id,
            "years_of_experience": user.get("years_of_experience"),
            "seniority": user.get("seniority"),
            "focus": user.get("focus"),
            "resume_data": resume_data,
            "github_contributions_data": _contribution_data(contribution) if contribution else None,
            "github_analysis": analysis,
            "title": title or default_title(self._now()),
            "is_active": True,
        }
        return await asyncio.to_thread(self._insert, user_id, row)

    def _insert(self, user_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self.client.table(SNAPSHOTS_TABLE).update({"is_active": False}).eq("user_id", user_id).execute()
            created = self._first(self.client.table(SNAPSHOTS_TABLE).insert(row).execute())
        except Exception as exc:
            raise SnapshotsServiceError(f"Failed to create snapshot: {exc}") from exc
        if not created:
            raise SnapshotsServiceError("Failed to create snapshot")
        logger.info("Created snapshot %s for %s", created.get("id"), user_id)
        return created

    def get(self, user_id: str, snapshot_id: str) -> Dict[str, Any]:
        try:
            response = (
                self.client.table(SNAPSHOTS_TABLE)
                .select("*")
                .eq("id", snapshot_id)
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise SnapshotsServiceError(f"Failed to load snapshot {snapshot_id}: {exc}") from exc
        row = self._first(response)
        if not row:
            raise NotFoundError("Snapshot not found")
        return row

    def get_active(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table(SNAPSHOTS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise SnapshotsServiceError(f"Failed to load active snapshot: {exc}") from exc
        return self._first(response)

    def history(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            response = (
                self.client.table(SNAPSHOTS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            raise SnapshotsServiceError(f"Failed to list snapshots: {exc}") from exc
        return self._rows(response)

    def update(self, user_id: str, snapshot_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        values["updated_at"] = self._now().isoformat()
        try:
            response = (
                self.client.table(SNAPSHOTS_TABLE)
                .update(values)
                .eq("id", snapshot_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as exc:
            raise SnapshotsServiceError(f"Failed to update snapshot {snapshot_id}: {exc}") from exc
        row = self._first(response)
        if not row:
            raise NotFoundError("Snapshot not found")
        return row

    async def analyze(
        self,
        user_id: str,
        snapshot_id: str,
        progress: Optional[ProgressChannel] = None,
    ) -> Dict[str, Any]:
        """Run the analysis over the contributions frozen in the snapshot and attach it."""
        snapshot = await asyncio.to_thread(self.get, user_id, snapshot_id)
        user = await asyncio.to_thread(self.users.require_user, user_id)
        data = (snapshot.get("github_contributions_data") or {}).get("data")
        if not data:
            raise ValidationError("No GitHub contributions data found in snapshot")
        analysis = await self._analysis(user_id, user, data, progress)
        return await asyncio.to_thread(self.update, user_id, snapshot_id, {"github_analysis": analysis})

    def deactivate(self, user_id: str, snapshot_id: str) -> None:
        if not snapshot_id or not user_id:
            raise ValidationError("Snapshot ID and User ID are required")
        try:
            self.update(user_id, snapshot_id, {"is_active": False})
        except NotFoundError:
            raise NotFoundError("Snapshot not found or you don't have permission to delete it") from None
        logger.info("Deactivated snapshot %s for %s", snapshot_id, user_id)
