"""Single-call contribution analysis.

All selected contributions are sent to the model in one consolidated request,
and the JSON answer is folded into a ``ConsolidatedReport``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.errors import UpstreamError, ValidationError

from ..contribution_filter import ContributionCaps
from ..llm.client import InvalidAPIKeyError, LLMClient, LLMError
from ..models import ContributionSnapshot
from . import prompts
from .context import DEFAULT_CONTEXT, AnalysisContext
from .items import (
    DEFAULT_CONTRIBUTION_TYPES,
    ContributionItem,
    RichAnalysis,
    build_project_context,
    build_rich_analysis,
    snapshot_to_items,
)
from .progress import ProgressChannel, publish

logger = logging.getLogger(__name__)

CONSOLIDATED_MAX_TOKENS = 16000

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


@dataclass
class ConsolidatedReport:
    overall_summary: str
    individual_reports: List[Dict[str, Any]]
    aggregated_insights: Dict[str, Any]
    rich_analysis: RichAnalysis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallSummary": self.overall_summary,
            "individualReports": self.individual_reports,
            "aggregatedInsights": self.aggregated_insights,
        }


@dataclass
class PipelineResult:
    report: ConsolidatedReport
    metadata: Dict[str, Any] = field(default_factory=dict)


def consolidated_client(api_key: str) -> LLMClient:
    """LLM client with room for one report per contribution."""
    return LLMClient(api_key=api_key, max_tokens=CONSOLIDATED_MAX_TOKENS)


def parse_consolidated_response(content: str) -> Dict[str, Any]:
    """Pull the first JSON object out of the model's reply."""
    match = _JSON_BLOCK.search(content or "")
    if not match:
        raise UpstreamError("Failed to extract JSON from LLM response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise UpstreamError(f"LLM response was not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise UpstreamError("LLM response JSON must be an object")
    return parsed


def _individual_report(index: int, report: Dict[str, Any], item: Optional[ContributionItem]) -> Dict[str, Any]:
    meta = item.metadata if item else {}
    return {
        "markdownReport": _text(report.get("markdownReport")) or _text(report.get("summary")),
        "contributionMetadata": {
            "type": item.type if item else "commit",
            "identifier": meta.get("sha") or meta.get("title") or f"contribution-{index}",
            "title": meta.get("title"),
            "author": meta.get("author"),
            "date": meta.get("date"),
        },
    }


def _list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, list) else []


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _report_index(report: Dict[str, Any], position: int) -> int:
    try:
        return int(report.get("contributionIndex"))
    except (TypeError, ValueError):
        return position


def build_report(parsed: Dict[str, Any], items: Sequence[ContributionItem]) -> ConsolidatedReport:
    """Map the model's JSON onto the contribution items it describes.

    Fields of the wrong shape are treated as missing.
    """
    raw_reports = [r for r in _list(parsed.get("individualReports")) if isinstance(r, dict)]
    reports = [
        report
        for _, _, report in sorted(
            (_report_index(report, position), position, report) for position, report in enumerate(raw_reports)
        )
    ]

    individual = [
        _individual_report(i, report, items[i] if i < len(items) else None)
        for i, report in enumerate(reports)
    ]

    step1 = [
        {"summary_high_level": _text(r.get("summary")), "changes": _list(r.get("keyChanges"))}
        for r in reports
    ]
    step2 = [
        {
            "tech_stack_utilized": [{"name": t} for t in _list(r.get("technologies")) if isinstance(t, str)],
            "design_patterns": [
                {"name": p, "confidence": "high"} for p in _list(r.get("patterns")) if isinstance(p, str)
            ],
            "key_decisions": [],
            "architectural_impact": _text(r.get("architecturalImpact")),
        }
        for r in reports
    ]
    rich = build_rich_analysis(step1, step2, list(items[: len(reports)]))
    summary = _text(parsed.get("consolidatedSummary"))
    rich.overall_summary = summary

    insights = _dict(parsed.get("aggregatedInsights"))
    return ConsolidatedReport(
        overall_summary=summary,
        individual_reports=individual,
        aggregated_insights={
            "totalContributions": len(items),
            "topTechnologies": _list(insights.get("topTechnologies")),
            "topPatterns": _list(insights.get("topPatterns")),
            "keyAchievements": _list(insights.get("keyAchievements")),
        },
        rich_analysis=rich,
    )


async def run_optimized_pipeline(
    snapshot: ContributionSnapshot,
    api_key: str,
    *,
    caps: ContributionCaps = ContributionCaps(),
    contribution_types: Sequence[str] = DEFAULT_CONTRIBUTION_TYPES,
    include_project_context: bool = True,
    context: AnalysisContext = DEFAULT_CONTEXT,
    progress: Optional[ProgressChannel] = None,
    llm_client_factory: Callable[[str], LLMClient] = consolidated_client,
) -> PipelineResult:
    """Analyze a snapshot with exactly one model call.

    Raises:
        ValidationError: nothing to analyze after caps and type selection
        UpstreamError: the model call failed or its answer was unusable
    """
    started = time.monotonic()
    publish(progress, "analyzing", 0, 1, "Preparing contributions...")

    items = snapshot_to_items(snapshot, caps, contribution_types)
    if not items:
        raise ValidationError("No contributions found to analyze")

    project_context = build_project_context(snapshot) if include_project_context else ""
    publish(
        progress,
        "analyzing",
        0,
        1,
        f"Analyzing {len(items)} contributions in a single consolidated call...",
    )

    client = llm_client_factory(api_key)
    system = prompts.system_prompt(context)
    user = prompts.user_prompt(items, context, project_context)
    try:
        content = await asyncio.to_thread(client.consolidated_analysis, system, user)
    except InvalidAPIKeyError as exc:
        raise UpstreamError(str(exc), details={"provider": "openai"}) from exc
    except LLMError as exc:
        raise UpstreamError(str(exc), details={"provider": "openai"}) from exc

    report = build_report(parse_consolidated_response(content), items)
    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("Consolidated analysis of %d contributions finished in %dms", len(items), duration_ms)

    publish(progress, "consolidated", 1, 1, "Analysis complete!")
    return PipelineResult(
        report=report,
        metadata={
            "totalContributions": len(items),
            "processedContributions": len(items),
            "totalDurationMs": duration_ms,
        },
    )
