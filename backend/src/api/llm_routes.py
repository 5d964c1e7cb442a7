# LLM API Routes
# OpenAI key management and the direct analyze / summarize / compare calls

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from analyzer.models import ContributionSnapshot
from api.dependencies import AuthContext, ErrorResponse, analysis_rate_limit, auth_rate_limit, get_auth_context
from services.github_service import GitHubService
from services.llm_service import DEFAULT_TONE, LLMService
from services.rate_limit import RateLimitResult
from services.resume_service import ResumeService
from services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/llm", tags=["LLM"])
key_router = APIRouter(prefix="/api/openai", tags=["LLM"])

LLM_ERRORS = {
    400: {"model": ErrorResponse, "description": "OpenAI key not configured"},
    401: {"model": ErrorResponse, "description": "Unauthorized or key cannot be decrypted"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    502: {"model": ErrorResponse, "description": "OpenAI request failed"},
}


def get_user_service() -> UserService:
    return UserService()


def get_llm_service(users: UserService = Depends(get_user_service)) -> LLMService:
    return LLMService(user_service=users)


def get_github_service(users: UserService = Depends(get_user_service)) -> GitHubService:
    return GitHubService(client=users.client, user_service=users)


def get_resume_service(users: UserService = Depends(get_user_service)) -> ResumeService:
    return ResumeService(client=users.client, user_service=users)


class APIKeyRequest(BaseModel):
    """Request model for saving an OpenAI key."""
    api_key: str = Field(..., min_length=1, alias="apiKey", description="OpenAI API key")

    model_config = {"populate_by_name": True}


class APIKeyStatus(BaseModel):
    has_key: bool = Field(..., alias="hasKey")

    model_config = {"populate_by_name": True}


class ContributionsRequest(BaseModel):
    """Contributions to analyze. The cached scan is used when omitted."""
    contributions: Optional[Dict[str, Any]] = None


class SummarizeRequest(ContributionsRequest):
    current_summary: Optional[str] = Field(None, alias="currentSummary")
    tone: str = DEFAULT_TONE

    model_config = {"populate_by_name": True}


class CompareRequest(ContributionsRequest):
    existing_resume: Optional[str] = Field(
        None, alias="existingResume", description="Resume text; the active resume is used when omitted"
    )

    model_config = {"populate_by_name": True}


def _snapshot(request: ContributionsRequest, user_id: str, github: GitHubService) -> ContributionSnapshot:
    if request.contributions:
        return ContributionSnapshot.from_dict(request.contributions)
    return github.get_contributions(user_id).snapshot


def _envelope(result: Dict[str, Any], limit: RateLimitResult) -> Dict[str, Any]:
    estimated = result.pop("estimated_tokens", 0)
    return {
        "success": True,
        "data": result,
        "meta": {"estimatedTokens": estimated, "remaining": limit.remaining},
    }


# OpenAI key


@key_router.post(
    "/key",
    responses={
        422: {"model": ErrorResponse, "description": "Invalid API key"},
        429: {"model": ErrorResponse, "description": "Too many attempts"},
    },
)
def save_openai_key(
    request: APIKeyRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(auth_rate_limit),
    service: LLMService = Depends(get_llm_service),
) -> Dict[str, Any]:
    service.save_key(auth.user_id, request.api_key, email=auth.email, name=auth.name)
    return {"success": True, "message": "OpenAI API key saved successfully"}


@key_router.get("/key", response_model=APIKeyStatus, response_model_by_alias=True)
def get_openai_key_status(
    auth: AuthContext = Depends(get_auth_context),
    users: UserService = Depends(get_user_service),
) -> APIKeyStatus:
    return APIKeyStatus(has_key=users.has_openai_key(auth.user_id))


@key_router.delete("/key")
def delete_openai_key(
    auth: AuthContext = Depends(get_auth_context),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    users.delete_openai_key(auth.user_id)
    return {"success": True, "message": "OpenAI API key deleted successfully"}


# Direct LLM calls


@router.post("/analyze", responses=LLM_ERRORS)
def analyze_contributions(
    request: ContributionsRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: LLMService = Depends(get_llm_service),
    github: GitHubService = Depends(get_github_service),
) -> Dict[str, Any]:
    snapshot = _snapshot(request, auth.user_id, github)
    return _envelope(service.analyze(auth.user_id, snapshot), limit)


@router.post("/summarize", responses=LLM_ERRORS)
def summarize_contributions(
    request: SummarizeRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: LLMService = Depends(get_llm_service),
    github: GitHubService = Depends(get_github_service),
) -> Dict[str, Any]:
    snapshot = _snapshot(request, auth.user_id, github)
    result = service.summarize(auth.user_id, snapshot, request.current_summary, request.tone)
    return _envelope(result, limit)


@router.post("/compare", responses=LLM_ERRORS)
def compare_resume(
    request: CompareRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: LLMService = Depends(get_llm_service),
    github: GitHubService = Depends(get_github_service),
    resumes: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    existing = request.existing_resume or resumes.active_resume_text(auth.user_id)
    snapshot = _snapshot(request, auth.user_id, github)
    return _envelope(service.compare(auth.user_id, existing, snapshot), limit)
