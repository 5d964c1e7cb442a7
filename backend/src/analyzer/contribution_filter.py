"""Pure filters over a ContributionSnapshot.

Each filter returns a new snapshot whose ``total_contributions`` is recomputed
from the filtered collections, so filters compose in either order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence, Tuple

from core.errors import ValidationError

from .models import ContributionSnapshot

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")

DEFAULT_MAX_COMMITS = 20
DEFAULT_MAX_PRS = 10
DEFAULT_MAX_ISSUES = 10
DEFAULT_MAX_RELEASES = 5


@dataclass(frozen=True)
class ContributionCaps:
    """Upper bounds applied per category before building a prompt."""

    max_commits: int = DEFAULT_MAX_COMMITS
    max_prs: int = DEFAULT_MAX_PRS
    max_issues: int = DEFAULT_MAX_ISSUES
    max_releases: int = DEFAULT_MAX_RELEASES


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime. Naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _with_total(snapshot: ContributionSnapshot, **changes) -> ContributionSnapshot:
    updated = replace(snapshot, **changes)
    return replace(updated, total_contributions=updated.item_count)


def _normalized_names(names: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not names:
        return ()
    return tuple(n.strip().lower() for n in names if n and n.strip())


def _matches(repository: str, needles: Sequence[str]) -> bool:
    haystack = (repository or "").lower()
    return any(needle in haystack for needle in needles)


def filter_by_repositories(
    snapshot: ContributionSnapshot,
    repository_names: Optional[Iterable[str]],
) -> ContributionSnapshot:
    """Keep only items whose repository contains one of the names (case-insensitive)."""
    needles = _normalized_names(repository_names)
    if not needles:
        return snapshot

    return _with_total(
        snapshot,
        repositories=tuple(r for r in snapshot.repositories if _matches(r.name, needles)),
        commits=tuple(c for c in snapshot.commits if _matches(c.repository, needles)),
        pull_requests=tuple(p for p in snapshot.pull_requests if _matches(p.repository, needles)),
        issues=tuple(i for i in snapshot.issues if _matches(i.repository, needles)),
        releases=tuple(r for r in snapshot.releases if _matches(r.repository, needles)),
    )


def resolve_date_window(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    last_n_days: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Turn the period options into a ``(start, end)`` pair.

    ``last_n_days`` takes precedence over explicit dates.
    """
    if last_n_days:
        if last_n_days < 0:
            raise ValidationError("lastNDays must be a positive number of days.")
        end = now or datetime.now(timezone.utc)
        return end - timedelta(days=last_n_days), end

    try:
        start = parse_timestamp(start_date) if start_date else None
        end = parse_timestamp(end_date) if end_date else None
    except ValueError as exc:
        raise ValidationError(f"Invalid date filter: {exc}") from exc
    return start, end


def _in_window(value: str, start: Optional[datetime], end: Optional[datetime]) -> bool:
    try:
        moment = parse_timestamp(value)
    except (ValueError, AttributeError):
        return False
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def filter_by_date(
    snapshot: ContributionSnapshot,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    last_n_days: Optional[int] = None,
    *,
    now: Optional[datetime] = None,
) -> ContributionSnapshot:
    """Keep items dated inside the inclusive window; repositories are untouched."""
    start, end = resolve_date_window(start_date, end_date, last_n_days, now=now)
    if start is None and end is None:
        return snapshot

    return _with_total(
        snapshot,
        commits=tuple(c for c in snapshot.commits if _in_window(c.date, start, end)),
        pull_requests=tuple(p for p in snapshot.pull_requests if _in_window(p.created_at, start, end)),
        issues=tuple(i for i in snapshot.issues if _in_window(i.created_at, start, end)),
        releases=tuple(r for r in snapshot.releases if _in_window(r.created_at, start, end)),
    )


def apply_filters(
    snapshot: ContributionSnapshot,
    *,
    repository_names: Optional[Iterable[str]] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    last_n_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ContributionSnapshot:
    filtered = filter_by_repositories(snapshot, repository_names)
    if start_date or end_date or last_n_days:
        filtered = filter_by_date(filtered, start_date, end_date, last_n_days, now=now)
    if filtered is not snapshot:
        logger.debug(
            "Filtered contributions from %d to %d items",
            snapshot.item_count,
            filtered.item_count,
        )
    return filtered


def truncate(snapshot: ContributionSnapshot, caps: ContributionCaps = ContributionCaps()) -> ContributionSnapshot:
    """Cap each category, keeping the first items of each."""
    return _with_total(
        snapshot,
        commits=snapshot.commits[: max(caps.max_commits, 0)],
        pull_requests=snapshot.pull_requests[: max(caps.max_prs, 0)],
        issues=snapshot.issues[: max(caps.max_issues, 0)],
        releases=snapshot.releases[: max(caps.max_releases, 0)],
    )
