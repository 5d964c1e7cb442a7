"""Agent analysis of GitHub contributions, blocking and streamed."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from analyzer.models import ContributionSnapshot
from analyzer.pipeline import ProgressChannel
from api.dependencies import AuthContext, ErrorResponse, analysis_rate_limit, get_auth_context
from api.streaming import stream_analysis
from services.agents_service import AgentsService, AnalysisOptions
from services.rate_limit import RateLimitResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["Agents"])


def get_agents_service() -> AgentsService:
    return AgentsService()


class AnalyzeRequest(BaseModel):
    contributions: Optional[Dict[str, Any]] = Field(
        None, description="Contribution snapshot; the cached scan is used when omitted"
    )
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)


def _contributions(request: AnalyzeRequest) -> Optional[ContributionSnapshot]:
    if not request.contributions:
        return None
    return ContributionSnapshot.from_dict(request.contributions)


@router.post(
    "/analyze-contributions",
    responses={
        400: {"model": ErrorResponse, "description": "OpenAI key not configured"},
        404: {"model": ErrorResponse, "description": "No contributions to analyze"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        502: {"model": ErrorResponse, "description": "OpenAI request failed"},
    },
)
async def analyze_contributions(
    request: AnalyzeRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: AgentsService = Depends(get_agents_service),
) -> Dict[str, Any]:
    result = await service.analyze(auth.user_id, _contributions(request), request.options)
    payload = result.to_dict()
    return {
        "success": True,
        "data": {
            "consolidatedReport": payload["consolidatedReport"],
            "richAnalysis": payload["richAnalysis"],
        },
        "metadata": {**payload["metadata"], "remaining": limit.remaining},
    }


@router.post("/analyze-contributions-stream", response_class=StreamingResponse)
async def analyze_contributions_stream(
    request: AnalyzeRequest,
    auth: AuthContext = Depends(get_auth_context),
    limit: RateLimitResult = Depends(analysis_rate_limit),
    service: AgentsService = Depends(get_agents_service),
) -> StreamingResponse:
    contributions = _contributions(request)

    async def run(channel: ProgressChannel) -> Dict[str, Any]:
        result = await service.analyze(auth.user_id, contributions, request.options, progress=channel)
        payload = result.to_dict()
        return {
            "data": {
                "consolidatedReport": payload["consolidatedReport"],
                "richAnalysis": payload["richAnalysis"],
            },
            "metadata": {**payload["metadata"], "remaining": limit.remaining},
        }

    return stream_analysis(run)
