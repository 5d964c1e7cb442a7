"""Thin async client for the GitHub REST API.

Used with a user's personal access token to validate it, collect their recent
activity into a ``ContributionSnapshot`` and read their API quota.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from analyzer.models import Commit, ContributionSnapshot, Issue, PullRequest, Release, Repository
from config.settings import DEFAULT_GITHUB_API_URL
from core.errors import UpstreamError

logger = logging.getLogger(__name__)

MAX_REPOS = 10
REPOS_PER_PAGE = 100
ITEMS_PER_PAGE = 50
MAX_CONCURRENT_REQUESTS = 4
REQUEST_TIMEOUT = 20.0


@dataclass(frozen=True)
class TokenValidation:
    valid: bool
    username: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RateLimitStatus:
    remaining: int
    limit: int
    reset: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"remaining": self.remaining, "limit": self.limit, "reset": self.reset.isoformat()}


class GitHubClient:
    """Async GitHub API client. Use as ``async with GitHubClient(token) as gh``."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_GITHUB_API_URL,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_concurrency: int = MAX_CONCURRENT_REQUESTS,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        async with self._semaphore:
            response = await self._http.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def validate_token(self) -> TokenValidation:
        try:
            data = await self._get("/user")
        except (httpx.HTTPError, ValueError) as exc:
            logger.info("GitHub token validation failed: %s", type(exc).__name__)
            return TokenValidation(valid=False, error="Invalid GitHub token")
        return TokenValidation(valid=True, username=data.get("login"))

    async def check_rate_limit(self) -> RateLimitStatus:
        try:
            data = await self._get("/rate_limit")
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Failed to read GitHub rate limit: {exc}") from exc
        rate = data.get("rate") or {}
        return RateLimitStatus(
            remaining=int(rate.get("remaining", 0)),
            limit=int(rate.get("limit", 0)),
            reset=datetime.fromtimestamp(int(rate.get("reset", 0)), tz=timezone.utc),
        )

    async def fetch_contributions(self, max_repos: int = MAX_REPOS) -> ContributionSnapshot:
        """Collect repositories plus the user's commits, PRs, issues and releases.

        Only the ``max_repos`` most recently updated repositories are scanned.
        A failure fetching one category of one repository is logged and
        treated as no results.
        """
        try:
            username = (await self._get("/user"))["login"]
            repos_payload = await self._get(
                "/user/repos", params={"per_page": REPOS_PER_PAGE, "sort": "updated"}
            )
        except (httpx.HTTPError, KeyError) as exc:
            raise UpstreamError(f"Failed to fetch GitHub repositories: {exc}") from exc

        repositories = [_repository(r) for r in repos_payload]
        scanned = repositories[:max_repos]

        languages: Dict[str, int] = {}
        for repo in scanned:
            if repo.language:
                languages[repo.language] = languages.get(repo.language, 0) + 1

        per_repo = await asyncio.gather(*(self._fetch_repository(repo.name, username) for repo in scanned))

        commits: List[Commit] = []
        pull_requests: List[PullRequest] = []
        issues: List[Issue] = []
        releases: List[Release] = []
        for repo_commits, repo_prs, repo_issues, repo_releases in per_repo:
            commits.extend(repo_commits)
            pull_requests.extend(repo_prs)
            issues.extend(repo_issues)
            releases.extend(repo_releases)

        snapshot = ContributionSnapshot.build(
            repositories=repositories,
            commits=commits,
            pull_requests=pull_requests,
            issues=issues,
            releases=releases,
            languages=languages,
        )
        logger.info(
            "Fetched %d contributions across %d repositories for %s",
            snapshot.total_contributions,
            len(scanned),
            username,
        )
        return snapshot

    async def _fetch_repository(self, full_name: str, username: str):
        return await asyncio.gather(
            self._fetch_commits(full_name, username),
            self._fetch_pull_requests(full_name, username),
            self._fetch_issues(full_name, username),
            self._fetch_releases(full_name, username),
        )

    async def _safe_list(self, full_name: str, kind: str, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            data = await self._get(f"/repos/{full_name}/{path}", params=params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Skipping %s for %s: %s", kind, full_name, exc)
            return []
        return data if isinstance(data, list) else []

    async def _fetch_commits(self, full_name: str, username: str) -> List[Commit]:
        data = await self._safe_list(
            full_name, "commits", "commits", {"author": username, "per_page": ITEMS_PER_PAGE}
        )
        commits = []
        for entry in data:
            details = entry.get("commit") or {}
            author = details.get("author") or {}
            commits.append(
                Commit(
                    sha=entry.get("sha", ""),
                    message=details.get("message", ""),
                    date=author.get("date") or datetime.now(timezone.utc).isoformat(),
                    repository=full_name,
                    url=entry.get("html_url", ""),
                    author=author.get("name"),
                )
            )
        return commits

    async def _fetch_pull_requests(self, full_name: str, username: str) -> List[PullRequest]:
        data = await self._safe_list(
            full_name, "pull requests", "pulls", {"state": "all", "per_page": ITEMS_PER_PAGE}
        )
        return [
            PullRequest(
                number=pr["number"],
                title=pr.get("title", ""),
                state=pr.get("state", ""),
                created_at=pr.get("created_at", ""),
                closed_at=pr.get("closed_at"),
                repository=full_name,
                url=pr.get("html_url", ""),
                body=pr.get("body"),
                author=username,
            )
            for pr in data
            if (pr.get("user") or {}).get("login") == username
        ]

    async def _fetch_issues(self, full_name: str, username: str) -> List[Issue]:
        data = await self._safe_list(
            full_name,
            "issues",
            "issues",
            {"creator": username, "state": "all", "per_page": ITEMS_PER_PAGE},
        )
        # The issues endpoint also returns pull requests.
        return [
            Issue(
                number=issue["number"],
                title=issue.get("title", ""),
                state=issue.get("state", ""),
                created_at=issue.get("created_at", ""),
                closed_at=issue.get("closed_at"),
                repository=full_name,
                url=issue.get("html_url", ""),
            )
            for issue in data
            if not issue.get("pull_request")
        ]

    async def _fetch_releases(self, full_name: str, username: str) -> List[Release]:
        data = await self._safe_list(full_name, "releases", "releases", {"per_page": ITEMS_PER_PAGE})
        return [
            Release(
                tag_name=release.get("tag_name", ""),
                name=release.get("name") or release.get("tag_name", ""),
                body=release.get("body") or None,
                created_at=release.get("created_at", ""),
                repository=full_name,
                url=release.get("html_url", ""),
                download_count=sum(int(a.get("download_count", 0)) for a in release.get("assets") or []),
            )
            for release in data
            if (release.get("author") or {}).get("login") == username
        ]


def _repository(payload: Dict[str, Any]) -> Repository:
    return Repository(
        name=payload.get("full_name") or payload.get("name", ""),
        description=payload.get("description") or None,
        url=payload.get("html_url", ""),
        language=payload.get("language") or None,
        stars=int(payload.get("stargazers_count") or 0),
        forks=int(payload.get("forks_count") or 0),
    )
