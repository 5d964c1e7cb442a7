"""Snapshot routes: freeze resume + contributions and attach analyses."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from analyzer.pipeline import ProgressChannel
from api.dependencies import AuthContext, ErrorResponse, analysis_rate_limit, get_auth_context
from api.streaming import stream_analysis
from core.errors import NotFoundError
from services.rate_limit import RateLimitResult
from services.snapshots_service import SnapshotsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snapshots", tags=["Snapshots"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Snapshot not found"}}


def get_snapshots_service() -> SnapshotsService:
    return SnapshotsService()


class CreateSnapshotRequest(BaseModel):
    resume_id: Optional[str] = Field(None, alias="resumeId")
    github_contribution_id: Optional[str] = Field(None, alias="githubContributionId")
    trigger_analysis: bool = Field(False, alias="triggerGitHubAnalysis")
    title: Optional[str] = None

    model_config = {"populate_by_name": True}


class UpdateSnapshotRequest(BaseModel):
    title: Optional[str] = None
    github_analysis: Optional[Dict[str, Any]] = Field(None, alias="githubAnalysis")

    model_config = {"populate_by_name": True}


@router.get("")
def snapshot_history(
    auth: AuthContext = Depends(get_auth_context),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    return {"snapshots": service.history(auth.user_id)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_snapshot(
    request: CreateSnapshotRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    snapshot = await service.create(
        auth.user_id,
        resume_id=request.resume_id,
        github_contribution_id=request.github_contribution_id,
        trigger_analysis=request.trigger_analysis,
        title=request.title,
    )
    return {"success": True, "snapshot": snapshot}


@router.get("/active", responses=NOT_FOUND)
def active_snapshot(
    auth: AuthContext = Depends(get_auth_context),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    snapshot = service.get_active(auth.user_id)
    if not snapshot:
        raise NotFoundError("No active snapshot")
    return {"snapshot": snapshot}


@router.get("/{snapshot_id}", responses=NOT_FOUND)
def get_snapshot(
    snapshot_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    return {"snapshot": service.get(auth.user_id, snapshot_id)}


@router.patch("/{snapshot_id}", responses=NOT_FOUND)
def update_snapshot(
    snapshot_id: str,
    request: UpdateSnapshotRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    changes = request.model_dump(exclude_unset=True)
    return {"success": True, "snapshot": service.update(auth.user_id, snapshot_id, changes)}


@router.delete("/{snapshot_id}", responses=NOT_FOUND)
def delete_snapshot(
    snapshot_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    service.deactivate(auth.user_id, snapshot_id)
    return {"success": True, "message": "Snapshot deleted successfully"}


@router.post("/{snapshot_id}/analyze", responses=NOT_FOUND)
async def analyze_snapshot(
    snapshot_id: str,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> Dict[str, Any]:
    snapshot = await service.analyze(auth.user_id, snapshot_id)
    return {"success": True, "snapshot": snapshot, "remaining": limit.remaining}


@router.post("/{snapshot_id}/analyze-stream", response_class=StreamingResponse)
async def analyze_snapshot_stream(
    snapshot_id: str,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: SnapshotsService = Depends(get_snapshots_service),
) -> StreamingResponse:
    async def run(channel: ProgressChannel) -> Dict[str, Any]:
        snapshot = await service.analyze(auth.user_id, snapshot_id, progress=channel)
        return {"snapshot": snapshot, "remaining": limit.remaining}

    return stream_analysis(run, fallback_error="Failed to analyze snapshot")
