"""GitHub contribution data model.

The dict form (``to_dict``/``from_dict``) uses the camelCase keys that are
stored in ``github_contributions.data`` and sent to the frontend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True, slots=True)
class Repository:
    name: str
    url: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Repository":
        return cls(
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            description=_opt_str(data.get("description")),
            language=_opt_str(data.get("language")),
            stars=_int(data.get("stars")),
            forks=_int(data.get("forks")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "description": self.description,
                "url": self.url,
                "language": self.language,
                "stars": self.stars,
                "forks": self.forks,
            }
        )


@dataclass(frozen=True, slots=True)
class Commit:
    sha: str
    message: str
    date: str
    repository: str
    url: str = ""
    author: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Commit":
        return cls(
            sha=str(data.get("sha") or ""),
            message=str(data.get("message") or ""),
            date=str(data.get("date") or ""),
            repository=str(data.get("repository") or ""),
            url=str(data.get("url") or ""),
            author=_opt_str(data.get("author")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "sha": self.sha,
                "message": self.message,
                "date": self.date,
                "repository": self.repository,
                "url": self.url,
                "author": self.author,
            }
        )


@dataclass(frozen=True, slots=True)
class PullRequest:
    number: int
    title: str
    state: str
    created_at: str
    repository: str
    url: str = ""
    closed_at: Optional[str] = None
    body: Optional[str] = None
    author: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PullRequest":
        return cls(
            number=_int(data.get("number")),
            title=str(data.get("title") or ""),
            state=str(data.get("state") or ""),
            created_at=str(data.get("createdAt") or ""),
            repository=str(data.get("repository") or ""),
            url=str(data.get("url") or ""),
            closed_at=_opt_str(data.get("closedAt")),
            body=_opt_str(data.get("body")),
            author=_opt_str(data.get("author")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "number": self.number,
                "title": self.title,
                "state": self.state,
                "createdAt": self.created_at,
                "closedAt": self.closed_at,
                "repository": self.repository,
                "url": self.url,
                "body": self.body,
                "author": self.author,
            }
        )


@dataclass(frozen=True, slots=True)
class Issue:
    number: int
    title: str
    state: str
    created_at: str
    repository: str
    url: str = ""
    closed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Issue":
        return cls(
            number=_int(data.get("number")),
            title=str(data.get("title") or ""),
            state=str(data.get("state") or ""),
            created_at=str(data.get("createdAt") or ""),
            repository=str(data.get("repository") or ""),
            url=str(data.get("url") or ""),
            closed_at=_opt_str(data.get("closedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "number": self.number,
                "title": self.title,
                "state": self.state,
                "createdAt": self.created_at,
                "closedAt": self.closed_at,
                "repository": self.repository,
                "url": self.url,
            }
        )


@dataclass(frozen=True, slots=True)
class Release:
    tag_name: str
    name: str
    created_at: str
    repository: str
    url: str = ""
    body: Optional[str] = None
    download_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Release":
        tag = str(data.get("tagName") or "")
        count = data.get("downloadCount")
        return cls(
            tag_name=tag,
            name=str(data.get("name") or tag),
            created_at=str(data.get("createdAt") or ""),
            repository=str(data.get("repository") or ""),
            url=str(data.get("url") or ""),
            body=_opt_str(data.get("body")),
            download_count=None if count is None else _int(count),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "tagName": self.tag_name,
                "name": self.name,
                "body": self.body,
                "createdAt": self.created_at,
                "repository": self.repository,
                "url": self.url,
                "downloadCount": self.download_count,
            }
        )


@dataclass(frozen=True, slots=True)
class ContributionSnapshot:
    """One scan of a user's GitHub activity. A new scan replaces it wholesale."""

    repositories: Tuple[Repository, ...] = ()
    commits: Tuple[Commit, ...] = ()
    pull_requests: Tuple[PullRequest, ...] = ()
    issues: Tuple[Issue, ...] = ()
    releases: Tuple[Release, ...] = ()
    languages: Mapping[str, int] = field(default_factory=dict)
    total_contributions: int = 0
    scanned_at: str = ""

    @classmethod
    def build(
        cls,
        *,
        repositories=(),
        commits=(),
        pull_requests=(),
        issues=(),
        releases=(),
        languages: Optional[Mapping[str, int]] = None,
        scanned_at: Optional[str] = None,
    ) -> "ContributionSnapshot":
        """Create a snapshot whose total is derived from its collections."""
        commits, pull_requests = tuple(commits), tuple(pull_requests)
        issues, releases = tuple(issues), tuple(releases)
        return cls(
            repositories=tuple(repositories),
            commits=commits,
            pull_requests=pull_requests,
            issues=issues,
            releases=releases,
            languages=dict(languages or {}),
            total_contributions=len(commits) + len(pull_requests) + len(issues) + len(releases),
            scanned_at=scanned_at or datetime.now(timezone.utc).isoformat(),
        )

    @property
    def item_count(self) -> int:
        return len(self.commits) + len(self.pull_requests) + len(self.issues) + len(self.releases)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContributionSnapshot":
        commits = tuple(Commit.from_dict(c) for c in data.get("commits") or [])
        prs = tuple(PullRequest.from_dict(p) for p in data.get("pullRequests") or [])
        issues = tuple(Issue.from_dict(i) for i in data.get("issues") or [])
        releases = tuple(Release.from_dict(r) for r in data.get("releases") or [])
        total = data.get("totalContributions")
        return cls(
            repositories=tuple(Repository.from_dict(r) for r in data.get("repositories") or []),
            commits=commits,
            pull_requests=prs,
            issues=issues,
            releases=releases,
            languages={str(k): _int(v) for k, v in (data.get("languages") or {}).items()},
            total_contributions=_int(total, len(commits) + len(prs) + len(issues) + len(releases)),
            scanned_at=str(data.get("scannedAt") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repositories": [r.to_dict() for r in self.repositories],
            "commits": [c.to_dict() for c in self.commits],
            "pullRequests": [p.to_dict() for p in self.pull_requests],
            "issues": [i.to_dict() for i in self.issues],
            "releases": [r.to_dict() for r in self.releases],
            "languages": dict(self.languages),
            "totalContributions": self.total_contributions,
            "scannedAt": self.scanned_at,
        }
