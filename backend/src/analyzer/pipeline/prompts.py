"""Prompt text for the consolidated analysis call."""

from __future__ import annotations

from typing import Sequence

from .context import AnalysisContext
from .items import ContributionItem

DIFF_PREVIEW_CHARS = 2000

RESPONSE_SHAPE = """{
  "consolidatedSummary": "Executive summary in markdown format",
  "aggregatedInsights": {
    "topTechnologies": [{"name": "Tech Name", "count": 1}],
    "topPatterns": [{"name": "Pattern Name", "count": 1}],
    "keyAchievements": ["Achievement 1", "Achievement 2"]
  },
  "individualReports": [
    {
      "contributionIndex": 0,
      "summary": "High-level summary",
      "keyChanges": ["Change 1", "Change 2"],
      "technologies": ["Tech 1", "Tech 2"],
      "patterns": ["Pattern 1"],
      "architecturalImpact": "Impact description",
      "markdownReport": "Full professional markdown report"
    }
  ]
}"""


def system_prompt(context: AnalysisContext) -> str:
    return (
        "You are an expert technical analyst specializing in GitHub contribution analysis. "
        "Your task is to analyze multiple contributions in a single comprehensive pass.\n\n"
        f"Context:\n{context.describe()}\n\n"
        "You will receive multiple contributions and must analyze each one comprehensively, "
        "then provide a consolidated summary."
    )


def _describe_item(index: int, item: ContributionItem) -> str:
    meta = item.metadata
    diff_preview = (item.raw_diff or "No diff available")[:DIFF_PREVIEW_CHARS]
    return (
        f"## Contribution {index + 1}: {item.type.upper()}\n"
        f"**Title/Identifier:** {meta.get('title') or meta.get('sha') or 'N/A'}\n"
        f"**Author:** {meta.get('author') or 'N/A'}\n"
        f"**Date:** {meta.get('date') or 'N/A'}\n"
        f"**Repository:** {meta.get('repository') or 'N/A'}\n\n"
        f"**Commit Messages:**\n{item.commit_messages or 'No commit messages'}\n\n"
        f"**Code Diff (preview):**\n```\n{diff_preview}\n```\n"
    )


def user_prompt(
    items: Sequence[ContributionItem],
    context: AnalysisContext,
    project_context: str = "",
) -> str:
    contributions = "\n\n---\n\n".join(_describe_item(i, item) for i, item in enumerate(items))
    extra = f"\n**Additional Context:**\n{project_context}\n" if project_context else ""
    return (
        f"Analyze the following {len(items)} contributions comprehensively. "
        "For each contribution, provide:\n\n"
        "1. **High-level Summary**: What was changed and why (2-3 sentences)\n"
        "2. **Key Changes**: List of significant modifications (3-5 items)\n"
        "3. **Technologies Used**: Technologies, frameworks, libraries identified\n"
        "4. **Design Patterns**: Design patterns or architectural decisions observed\n"
        "5. **Architectural Impact**: How this change affects the system architecture\n"
        "6. **Professional Report**: A markdown-formatted professional summary suitable for "
        f"{context.objective.value}\n\n"
        "After analyzing all contributions, provide:\n"
        "- A consolidated executive summary (3-4 paragraphs)\n"
        "- Aggregated insights: top technologies, patterns, and key achievements\n"
        "- Individual reports for each contribution\n"
        f"{extra}\n"
        f"**Contributions to Analyze:**\n{contributions}\n\n"
        f"Return your response as a JSON object with this structure:\n{RESPONSE_SHAPE}"
    )
