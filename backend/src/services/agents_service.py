"""Agent analysis: filter a user's contributions and run the consolidated pipeline."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from analyzer.contribution_filter import (
    DEFAULT_MAX_COMMITS,
    DEFAULT_MAX_ISSUES,
    DEFAULT_MAX_PRS,
    DEFAULT_MAX_RELEASES,
    ContributionCaps,
    apply_filters,
)
from analyzer.llm import LLMClient
from analyzer.models import ContributionSnapshot
from analyzer.pipeline import (
    DEFAULT_CONTEXT,
    AnalysisContext,
    ConsolidatedReport,
    ProgressChannel,
    consolidated_client,
    run_optimized_pipeline,
)
from analyzer.pipeline.items import CONTRIBUTION_TYPES, DEFAULT_CONTRIBUTION_TYPES

from .github_service import GitHubService
from .user_service import UserService

logger = logging.getLogger(__name__)


class AnalysisOptions(BaseModel):
    """Knobs for one analysis run. Accepts camelCase or snake_case keys."""

    max_commits: int = Field(default=DEFAULT_MAX_COMMITS, alias="maxCommits", ge=0)
    max_prs: int = Field(default=DEFAULT_MAX_PRS, alias="maxPRs", ge=0)
    max_issues: int = Field(default=DEFAULT_MAX_ISSUES, alias="maxIssues", ge=0)
    max_releases: int = Field(default=DEFAULT_MAX_RELEASES, alias="maxReleases", ge=0)
    include_project_context: bool = Field(default=True, alias="includeProjectContext")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    last_n_days: Optional[int] = Field(default=None, alias="lastNDays", ge=1)
    repository_names: Optional[List[str]] = Field(default=None, alias="repositoryNames")
    contribution_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTRIBUTION_TYPES), alias="contributionTypes"
    )
    context: Optional[AnalysisContext] = None

    model_config = {"populate_by_name": True}

    def caps(self) -> ContributionCaps:
        return ContributionCaps(
            max_commits=self.max_commits,
            max_prs=self.max_prs,
            max_issues=self.max_issues,
            max_releases=self.max_releases,
        )

    def selected_types(self) -> List[str]:
        types = [t for t in self.contribution_types if t in CONTRIBUTION_TYPES]
        return types or list(DEFAULT_CONTRIBUTION_TYPES)


@dataclass
class AgentAnalysisResult:
    consolidated_report: ConsolidatedReport
    metadata: Dict[str, Any]

    @property
    def rich_analysis(self):
        return self.consolidated_report.rich_analysis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consolidatedReport": self.consolidated_report.to_dict(),
            "richAnalysis": self.rich_analysis.to_dict(),
            "metadata": dict(self.metadata),
        }


class AgentsService:
    """Runs the single-call analysis pipeline for a user.

    Nothing is persisted here; callers decide what to keep.
    """

    def __init__(
        self,
        github_service: Optional[GitHubService] = None,
        user_service: Optional[UserService] = None,
        llm_client_factory: Callable[[str], LLMClient] = consolidated_client,
    ) -> None:
        self.users = user_service or (github_service.users if github_service else UserService())
        self.github = github_service or GitHubService(client=self.users.client, user_service=self.users)
        self._llm_client_factory = llm_client_factory

    async def analyze(
        self,
        user_id: str,
        contributions: Optional[ContributionSnapshot] = None,
        options: Optional[AnalysisOptions] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> AgentAnalysisResult:
        """Analyze ``contributions``, or the user's cached scan when none are given.

        Raises:
            NotFoundError: no contributions given and none cached
            ConfigurationError: the user has no OpenAI key
            DecryptionError: the stored key cannot be decrypted
            UpstreamError: the model call failed
        """
        options = options or AnalysisOptions()
        if contributions is None:
            cached = await asyncio.to_thread(self.github.get_contributions, user_id)
            contributions = cached.snapshot

        filtered = apply_filters(
            contributions,
            repository_names=options.repository_names,
            start_date=options.start_date,
            end_date=options.end_date,
            last_n_days=options.last_n_days,
        )

        api_key = await asyncio.to_thread(self.users.get_openai_key, user_id)
        result = await run_optimized_pipeline(
            filtered,
            api_key,
            caps=options.caps(),
            contribution_types=options.selected_types(),
            include_project_context=options.include_project_context,
            context=options.context or DEFAULT_CONTEXT,
            progress=progress,
            llm_client_factory=self._llm_client_factory,
        )
        logger.info(
            "Agent analysis for %s: %d contributions in %sms",
            user_id,
            result.metadata.get("processedContributions", 0),
            result.metadata.get("totalDurationMs", 0),
        )
        return AgentAnalysisResult(consolidated_report=result.report, metadata=result.metadata)
