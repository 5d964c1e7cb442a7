"""Projects: repositories a user picked to feature on their resume."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from analyzer.models import Repository
from api.dependencies import AuthContext, ErrorResponse, get_auth_context
from core.errors import ValidationError
from services.projects_service import ProjectsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Project not found"}}


def get_projects_service() -> ProjectsService:
    return ProjectsService()


class RepositoryPayload(BaseModel):
    name: str = Field(..., min_length=1)
    url: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0

    def to_repository(self) -> Repository:
        return Repository.from_dict(self.model_dump())


class CreateProjectRequest(BaseModel):
    """Either one ``repository`` or a list of ``repositories``."""

    repository: Optional[RepositoryPayload] = None
    repositories: Optional[List[RepositoryPayload]] = None
    project_name: Optional[str] = Field(None, alias="projectName")
    project_names: Dict[str, str] = Field(default_factory=dict, alias="projectNames")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class UpdateProjectRequest(BaseModel):
    project_name: Optional[str] = Field(None, alias="projectName")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


@router.get("")
def list_projects(
    auth: AuthContext = Depends(get_auth_context),
    service: ProjectsService = Depends(get_projects_service),
) -> Dict[str, Any]:
    return {"success": True, "data": service.list_active(auth.user_id)}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse, "description": "repository or repositories required"}},
)
def create_project(
    request: CreateProjectRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: ProjectsService = Depends(get_projects_service),
) -> Dict[str, Any]:
    if request.repositories:
        projects = service.create_many(
            auth.user_id,
            [repo.to_repository() for repo in request.repositories],
            request.project_names,
        )
        logger.info("Created %d projects for %s", len(projects), auth.user_id)
        return {"success": True, "data": projects}
    if request.repository:
        project = service.create(
            auth.user_id,
            request.repository.to_repository(),
            project_name=request.project_name,
            notes=request.notes,
        )
        return {"success": True, "data": project}
    raise ValidationError("repository or repositories required")


@router.get("/{project_id}", responses=NOT_FOUND)
def get_project(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: ProjectsService = Depends(get_projects_service),
) -> Dict[str, Any]:
    return {"success": True, "data": service.get(auth.user_id, project_id)}


@router.patch("/{project_id}", responses=NOT_FOUND)
def update_project(
    project_id: str,
    request: UpdateProjectRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: ProjectsService = Depends(get_projects_service),
) -> Dict[str, Any]:
    changes = request.model_dump(exclude_unset=True)
    return {"success": True, "data": service.update(auth.user_id, project_id, changes)}


@router.delete("/{project_id}", responses=NOT_FOUND)
def delete_project(
    project_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: ProjectsService = Depends(get_projects_service),
) -> Dict[str, Any]:
    service.deactivate(auth.user_id, project_id)
    return {"success": True}
