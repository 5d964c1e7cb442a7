from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from supabase import Client

from analyzer.models import Repository
from core.errors import AppError, NotFoundError

from .database import SupabaseService

logger = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"


class ProjectsServiceError(AppError):
    """Raised when project persistence fails."""


def _project_row(user_id: str, repository: Repository, project_name: Optional[str], notes: Optional[str]) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "repository_name": repository.name,
        "repository_url": repository.url,
        "description": repository.description or None,
        "language": repository.language or None,
        # Stored as text so large counts survive the round trip.
        "stars": str(repository.stars) if repository.stars is not None else None,
        "project_name": project_name or None,
        "notes": notes or None,
        "is_active": True,
    }


class ProjectsService(SupabaseService):
    """Repositories a user selected as resume projects."""

    error_class = ProjectsServiceError

    def __init__(self, client: Optional[Client] = None) -> None:
        super().__init__(client)

    def create(
        self,
        user_id: str,
        repository: Repository,
        project_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            response = (
                self.client.table(PROJECTS_TABLE)
                .insert(_project_row(user_id, repository, project_name, notes))
                .execute()
            )
        except Exception as exc:
            raise ProjectsServiceError(f"Failed to create project: {exc}") from exc
        row = self._first(response)
        if not row:
            raise ProjectsServiceError("Failed to create project")
        return row

    def create_many(
        self,
        user_id: str,
        repositories: Sequence[Repository],
        project_names: Optional[Mapping[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """Create one project per repository; names are looked up by repository name."""
        if not repositories:
            return []
        names = project_names or {}
        rows = [_project_row(user_id, repo, names.get(repo.name), None) for repo in repositories]
        try:
            response = self.client.table(PROJECTS_TABLE).insert(rows).execute()
        except Exception as exc:
            raise ProjectsServiceError(f"Failed to create projects: {exc}") from exc
        return self._rows(response)

    def list_active(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            response = (
                self.client.table(PROJECTS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .order("created_at")
                .execute()
            )
        except Exception as exc:
            raise ProjectsServiceError(f"Failed to list projects for {user_id}: {exc}") from exc
        return self._rows(response)

    def get(self, user_id: str, project_id: str) -> Dict[str, Any]:
        try:
            response = (
                self.client.table(PROJECTS_TABLE)
                .select("*")
                .eq("id", project_id)
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise ProjectsServiceError(f"Failed to load project {project_id}: {exc}") from exc
        row = self._first(response)
        if not row:
            raise NotFoundError("Project not found")
        return row

    def _update(self, user_id: str, project_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            response = (
                self.client.table(PROJECTS_TABLE)
                .update(values)
                .eq("id", project_id)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as exc:
            raise ProjectsServiceError(f"Failed to update project {project_id}: {exc}") from exc
        row = self._first(response)
        if not row:
            raise NotFoundError("Project not found or not owned by user")
        return row

    def update(self, user_id: str, project_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply ``project_name`` / ``notes`` from ``changes``; empty strings clear them."""
        values = {key: (changes[key] or None) for key in ("project_name", "notes") if key in changes}
        return self._update(user_id, project_id, values)

    def deactivate(self, user_id: str, project_id: str) -> None:
        self._update(user_id, project_id, {"is_active": False})
        logger.info("Deactivated project %s for %s", project_id, user_id)
