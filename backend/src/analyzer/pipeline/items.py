"""Turn snapshot entries into prompt-ready items and fold LLM output back into a report."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..contribution_filter import ContributionCaps, truncate
from ..models import Commit, ContributionSnapshot, Issue, PullRequest, Release

logger = logging.getLogger(__name__)

CONTRIBUTION_TYPES = ("pr", "commit", "issue", "release")
DEFAULT_CONTRIBUTION_TYPES = ("pr", "commit")
MAX_RANKED = 10
MAX_RECOMMENDATIONS = 5


@dataclass
class ContributionItem:
    type: str
    commit_messages: str
    raw_diff: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def identifier(self) -> str:
        meta = self.metadata
        if meta.get("sha"):
            return str(meta["sha"])
        if meta.get("number") is not None:
            return f"#{meta['number']}"
        return str(meta.get("title") or meta.get("tag") or "")


def commit_to_item(commit: Commit) -> ContributionItem:
    return ContributionItem(
        type="commit",
        commit_messages=commit.message,
        raw_diff="No diff available.",
        metadata={
            "sha": commit.sha,
            "author": commit.author or "Unknown",
            "date": commit.date,
            "repository": commit.repository,
        },
    )


def pull_request_to_item(pr: PullRequest) -> ContributionItem:
    return ContributionItem(
        type="pr",
        commit_messages=f"PR #{pr.number}: {pr.title}\n\n{pr.body or 'No description provided'}",
        raw_diff=f"Pull Request state: {pr.state}",
        metadata={
            "number": pr.number,
            "title": pr.title,
            "author": pr.author,
            "date": pr.created_at,
            "repository": pr.repository,
        },
    )


def issue_to_item(issue: Issue) -> ContributionItem:
    return ContributionItem(
        type="issue",
        commit_messages=f"Issue #{issue.number}: {issue.title}",
        raw_diff=f"Issue state: {issue.state}",
        metadata={
            "number": issue.number,
            "title": issue.title,
            "date": issue.created_at,
            "repository": issue.repository,
        },
    )


def release_to_item(release: Release) -> ContributionItem:
    return ContributionItem(
        type="release",
        commit_messages=f"Release {release.tag_name}: {release.name}\n\n{release.body or ''}".rstrip(),
        raw_diff=f"Downloads: {release.download_count or 0}",
        metadata={
            "tag": release.tag_name,
            "title": release.name,
            "date": release.created_at,
            "repository": release.repository,
        },
    )


def snapshot_to_items(
    snapshot: ContributionSnapshot,
    caps: ContributionCaps = ContributionCaps(),
    contribution_types: Sequence[str] = DEFAULT_CONTRIBUTION_TYPES,
) -> List[ContributionItem]:
    """PRs first, then commits, issues and releases, each capped."""
    wanted = set(contribution_types)
    capped = truncate(snapshot, caps)
    items: List[ContributionItem] = []
    if "pr" in wanted:
        items.extend(pull_request_to_item(p) for p in capped.pull_requests)
    if "commit" in wanted:
        items.extend(commit_to_item(c) for c in capped.commits)
    if "issue" in wanted:
        items.extend(issue_to_item(i) for i in capped.issues)
    if "release" in wanted:
        items.extend(release_to_item(r) for r in capped.releases)
    return items


def build_project_context(snapshot: ContributionSnapshot) -> str:
    """Short description of the user's repositories to ground the prompt."""
    names = [r.name for r in snapshot.repositories]
    languages: List[str] = []
    for repo in snapshot.repositories:
        if repo.language and repo.language not in languages:
            languages.append(repo.language)
    for language in snapshot.languages:
        if language not in languages:
            languages.append(language)

    primary = languages[0] if languages else "software"
    return (
        "# Project Context\n\n"
        f"## Repositories\n{', '.join(names)}\n\n"
        f"## Primary Languages\n{', '.join(languages)}\n\n"
        "## Project Structure\n"
        f"Based on the repositories, this appears to be a {primary} project "
        f"with contributions across {len(names)} repositories."
    )


# ---------------------------------------------------------------------------
# Rich analysis
# ---------------------------------------------------------------------------


@dataclass
class PRAnalysis:
    pr_number: int
    title: str
    summary: str
    technologies: List[str]
    patterns: List[str]
    complexity: str
    impact: str
    files_changed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prNumber": self.pr_number,
            "title": self.title,
            "summary": self.summary,
            "technologies": list(self.technologies),
            "patterns": list(self.patterns),
            "complexity": self.complexity,
            "impact": self.impact,
            "filesChanged": self.files_changed,
        }


@dataclass
class CommitAnalysis:
    sha: str
    message: str
    summary: str
    technologies: List[str]
    patterns: List[str]
    files_changed: int
    impact: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "summary": self.summary,
            "technologies": list(self.technologies),
            "patterns": list(self.patterns),
            "filesChanged": self.files_changed,
            "impact": self.impact,
        }


@dataclass
class RichAnalysis:
    pr_analyses: List[PRAnalysis] = field(default_factory=list)
    commit_analyses: List[CommitAnalysis] = field(default_factory=list)
    overall_summary: str = ""
    key_technologies: List[str] = field(default_factory=list)
    key_patterns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prAnalyses": [pr.to_dict() for pr in self.pr_analyses],
            "commitAnalyses": [commit.to_dict() for commit in self.commit_analyses],
            "overallSummary": self.overall_summary,
            "keyTechnologies": list(self.key_technologies),
            "keyPatterns": list(self.key_patterns),
            "recommendations": list(self.recommendations),
            "metadata": dict(self.metadata),
        }


def complexity_for(change_count: int) -> str:
    if change_count <= 3:
        return "low"
    if change_count <= 10:
        return "medium"
    return "high"


def _names(entries: Optional[Iterable[Any]]) -> List[str]:
    names: List[str] = []
    for entry in entries or []:
        name = entry.get("name") if isinstance(entry, dict) else entry
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


def _confident_patterns(entries: Optional[Iterable[Any]]) -> List[str]:
    kept: List[Any] = []
    for entry in entries or []:
        if isinstance(entry, dict):
            if str(entry.get("confidence", "high")).lower() in ("high", "medium"):
                kept.append(entry)
        else:
            kept.append(entry)
    return _names(kept)


def _ranked(groups: Iterable[List[str]]) -> List[str]:
    counts: Counter = Counter()
    for group in groups:
        counts.update(group)
    return [name for name, _ in counts.most_common(MAX_RANKED)]


def build_rich_analysis(
    step1_results: Sequence[Dict[str, Any]],
    step2_results: Sequence[Dict[str, Any]],
    items: Sequence[ContributionItem],
) -> RichAnalysis:
    """Combine per-item summaries (step 1) and tech/pattern findings (step 2)."""
    result = RichAnalysis()
    tech_groups: List[List[str]] = []
    pattern_groups: List[List[str]] = []
    total_changes = 0

    for item, step1, step2 in zip(items, step1_results, step2_results):
        changes = step1.get("changes") or []
        total_changes += len(changes)
        technologies = _names(step2.get("tech_stack_utilized"))
        patterns = _confident_patterns(step2.get("design_patterns"))
        tech_groups.append(technologies)
        pattern_groups.append(patterns)

        if item.type == "pr":
            result.pr_analyses.append(
                PRAnalysis(
                    pr_number=int(item.metadata.get("number") or 0),
                    title=item.metadata.get("title") or "Untitled PR",
                    summary=step1.get("summary_high_level", ""),
                    technologies=technologies,
                    patterns=patterns,
                    complexity=complexity_for(len(changes)),
                    impact=step2.get("architectural_impact", ""),
                    files_changed=len(changes),
                )
            )
        elif item.type == "commit":
            result.commit_analyses.append(
                CommitAnalysis(
                    sha=str(item.metadata.get("sha") or ""),
                    message=item.commit_messages,
                    summary=step1.get("summary_high_level", ""),
                    technologies=technologies,
                    patterns=patterns,
                    files_changed=len(changes),
                    impact=step2.get("architectural_impact", ""),
                )
            )

    result.key_technologies = _ranked(tech_groups)
    result.key_patterns = _ranked(pattern_groups)
    result.recommendations = [
        decision
        for step2 in step2_results
        for decision in (step2.get("key_decisions") or [])
        if isinstance(decision, str) and decision
    ][:MAX_RECOMMENDATIONS]

    distribution = Counter(pr.complexity for pr in result.pr_analyses)
    result.metadata = {
        "totalPRs": len(result.pr_analyses),
        "totalCommits": len(result.commit_analyses),
        "totalFilesChanged": total_changes,
        "complexityDistribution": {
            "low": distribution.get("low", 0),
            "medium": distribution.get("medium", 0),
            "high": distribution.get("high", 0),
        },
    }
    return result
