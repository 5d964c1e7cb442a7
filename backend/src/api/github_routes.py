"""GitHub account connection and contribution scans."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import AuthContext, ErrorResponse, api_rate_limit, auth_rate_limit, get_auth_context
from services.github_service import GitHubService
from services.rate_limit import RateLimitResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/github", tags=["GitHub"])


def get_github_service() -> GitHubService:
    return GitHubService()


class ConnectRequest(BaseModel):
    token: str = Field(..., min_length=1, description="GitHub personal access token")


class ConnectResponse(BaseModel):
    success: bool = True
    username: str
    rate_limit: Dict[str, Any] = Field(default_factory=dict, alias="rateLimit")

    model_config = {"populate_by_name": True}


class StatusResponse(BaseModel):
    connected: bool
    username: Optional[str] = None


@router.post(
    "/connect",
    response_model=ConnectResponse,
    response_model_by_alias=True,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        422: {"model": ErrorResponse, "description": "Invalid GitHub token"},
        429: {"model": ErrorResponse, "description": "Too many connection attempts"},
    },
)
async def connect_github(
    request: ConnectRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(auth_rate_limit),
    service: GitHubService = Depends(get_github_service),
) -> ConnectResponse:
    result = await service.connect(auth.user_id, request.token, email=auth.email, name=auth.name)
    return ConnectResponse(username=result["username"], rate_limit=result["rateLimit"])


@router.post(
    "/scan",
    responses={
        400: {"model": ErrorResponse, "description": "GitHub not connected"},
        429: {"model": ErrorResponse, "description": "Scan limit reached"},
    },
)
async def scan_github(
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(api_rate_limit),
    service: GitHubService = Depends(get_github_service),
) -> Dict[str, Any]:
    result = await service.scan(auth.user_id)
    logger.info("GitHub scan finished for %s", auth.user_id)
    return {"success": True, **result}


@router.get("/status", response_model=StatusResponse)
def github_status(
    auth: AuthContext = Depends(get_auth_context),
    service: GitHubService = Depends(get_github_service),
) -> StatusResponse:
    return StatusResponse(**service.status(auth.user_id))


@router.get(
    "/contributions",
    responses={404: {"model": ErrorResponse, "description": "Never scanned"}},
)
def github_contributions(
    auth: AuthContext = Depends(get_auth_context),
    service: GitHubService = Depends(get_github_service),
) -> Dict[str, Any]:
    return service.get_contributions(auth.user_id).to_dict()
