from .context import DEFAULT_CONTEXT, AnalysisContext, Objective, Role, Seniority
from .items import ContributionItem, RichAnalysis, build_project_context, build_rich_analysis, snapshot_to_items
from .pipeline import (
    CONSOLIDATED_MAX_TOKENS,
    ConsolidatedReport,
    PipelineResult,
    consolidated_client,
    parse_consolidated_response,
    run_optimized_pipeline,
)
from .progress import ProgressChannel, ProgressEvent, to_sse

__all__ = [
    "AnalysisContext",
    "CONSOLIDATED_MAX_TOKENS",
    "ConsolidatedReport",
    "ContributionItem",
    "DEFAULT_CONTEXT",
    "Objective",
    "PipelineResult",
    "ProgressChannel",
    "ProgressEvent",
    "RichAnalysis",
    "Role",
    "Seniority",
    "build_project_context",
    "build_rich_analysis",
    "consolidated_client",
    "parse_consolidated_response",
    "run_optimized_pipeline",
    "snapshot_to_items",
    "to_sse",
]
