"""Connecting a GitHub account and caching scans of its activity."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from supabase import Client

from analyzer.models import ContributionSnapshot
from config.settings import get_settings
from core.errors import AppError, ConfigurationError, NotFoundError, RateLimitError, ValidationError

from .database import SupabaseService
from .github_client import GitHubClient
from .user_service import UserService

logger = logging.getLogger(__name__)

CONTRIBUTIONS_TABLE = "github_contributions"
SCANS_TABLE = "github_scans"
CACHE_DAYS = 30
SCAN_WINDOW_DAYS = 30
BASIC_TIER_SCANS = 4


class GitHubServiceError(AppError):
    """Raised when the contribution cache cannot be read or written."""


@dataclass
class CachedContributions:
    id: Optional[str]
    snapshot: ContributionSnapshot
    last_scanned: Optional[str]
    scan_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contributions": self.snapshot.to_dict(),
            "lastScanned": self.last_scanned,
            "scanCount": self.scan_count,
        }


def _default_client_factory(token: str) -> GitHubClient:
    return GitHubClient(token, base_url=get_settings().github_api_url)


class GitHubService(SupabaseService):
    error_class = GitHubServiceError

    def __init__(
        self,
        client: Optional[Client] = None,
        user_service: Optional[UserService] = None,
        github_client_factory: Callable[[str], GitHubClient] = _default_client_factory,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        super().__init__(client)
        self.users = user_service or UserService(client=self.client)
        self._github_client_factory = github_client_factory
        self._now = clock

    async def connect(
        self,
        user_id: str,
        token: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate a PAT, store it encrypted and report the account's API quota."""
        if not token or not token.strip():
            raise ValidationError("GitHub token is required")

        async with self._github_client_factory(token.strip()) as github:
            validation = await github.validate_token()
            if not validation.valid:
                raise ValidationError(validation.error or "Invalid GitHub token")
            await asyncio.to_thread(
                self.users.save_github_credentials,
                user_id,
                token.strip(),
                validation.username,
                email=email,
                name=name,
            )
            rate_limit = await github.check_rate_limit()

        logger.info("Connected GitHub account %s for user %s", validation.username, user_id)
        return {
            "username": validation.username or "User not provided",
            "rateLimit": {"remaining": rate_limit.remaining, "limit": rate_limit.limit},
        }

    def status(self, user_id: str) -> Dict[str, Any]:
        user = self.users.get_user(user_id) or {}
        return {
            "connected": bool(user.get("github_pat")),
            "username": user.get("github_username"),
        }

    def recent_scan_count(self, user_id: str) -> int:
        """Scans logged in the rolling window, boundary included."""
        since = self._now() - timedelta(days=SCAN_WINDOW_DAYS)
        try:
            response = (
                self.client.table(SCANS_TABLE)
                .select("id")
                .eq("user_id", user_id)
                .gte("created_at", since.isoformat())
                .execute()
            )
        except Exception as exc:
            raise GitHubServiceError(f"Failed to count scans for {user_id}: {exc}") from exc
        return len(self._rows(response))

    def _check_scan_quota(self, user: Dict[str, Any]) -> None:
        if (user.get("subscription_tier") or "basic") != "basic":
            return
        if self.recent_scan_count(user["id"]) >= BASIC_TIER_SCANS:
            raise RateLimitError(
                "Monthly scan limit reached (4/month for Basic tier). "
                "Upgrade to Premium for unlimited scans."
            )

    async def scan(self, user_id: str) -> Dict[str, Any]:
        user = await asyncio.to_thread(self.users.get_user, user_id)
        if not user or not user.get("github_pat"):
            raise ConfigurationError("GitHub token not found. Please connect your GitHub account first.")
        await asyncio.to_thread(self._check_scan_quota, user)

        token = await asyncio.to_thread(self.users.get_github_token, user_id)
        async with self._github_client_factory(token) as github:
            snapshot = await github.fetch_contributions()

        await asyncio.to_thread(self.store_snapshot, user_id, snapshot)
        return {
            "contributions": snapshot.to_dict(),
            "message": "GitHub contributions scanned successfully",
        }

    def store_snapshot(self, user_id: str, snapshot: ContributionSnapshot) -> None:
        """Replace the cached snapshot and log the scan."""
        now = self._now()
        values = {
            "data": snapshot.to_dict(),
            "last_scanned": now.isoformat(),
            "expires_at": (now + timedelta(days=CACHE_DAYS)).isoformat(),
        }
        try:
            existing = self._first(
                self.client.table(CONTRIBUTIONS_TABLE)
                .select("id, scan_count")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
            if existing:
                values["scan_count"] = int(existing.get("scan_count") or 0) + 1
                self.client.table(CONTRIBUTIONS_TABLE).update(values).eq("id", existing["id"]).execute()
            else:
                values.update({"user_id": user_id, "scan_count": 1})
                self.client.table(CONTRIBUTIONS_TABLE).insert(values).execute()
            self.client.table(SCANS_TABLE).insert(
                {"user_id": user_id, "created_at": now.isoformat()}
            ).execute()
        except Exception as exc:
            raise GitHubServiceError(f"Failed to store contributions for {user_id}: {exc}") from exc

    def get_cached(self, user_id: str) -> Optional[CachedContributions]:
        try:
            row = self._first(
                self.client.table(CONTRIBUTIONS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise GitHubServiceError(f"Failed to load contributions for {user_id}: {exc}") from exc
        if not row:
            return None
        return CachedContributions(
            id=row.get("id"),
            snapshot=ContributionSnapshot.from_dict(row.get("data") or {}),
            last_scanned=row.get("last_scanned"),
            scan_count=int(row.get("scan_count") or 0),
        )

    def get_contributions(self, user_id: str) -> CachedContributions:
        cached = self.get_cached(user_id)
        if cached is None:
            raise NotFoundError("No contributions found. Please scan your GitHub account first.")
        return cached
