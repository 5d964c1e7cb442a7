"""Fixed-window, in-process request limiting keyed by an opaque identifier.

Counters live in a ``RateLimitStore`` owned by each limiter, so limiters are
independent of one another and a process restart resets every window. State
is not shared between server instances.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Iterator, Optional

from core.errors import RateLimitError

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RateLimitEntry:
    """Request count for one identifier and the instant its window ends."""

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int


class RateLimitStore:
    """Mapping of identifier -> RateLimitEntry."""

    def __init__(self) -> None:
        self._entries: Dict[str, RateLimitEntry] = {}

    def get(self, identifier: str) -> Optional[RateLimitEntry]:
        return self._entries.get(identifier)

    def set(self, identifier: str, entry: RateLimitEntry) -> None:
        self._entries[identifier] = entry

    def delete(self, identifier: str) -> None:
        self._entries.pop(identifier, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))


class RateLimiter:
    """
    Allow at most ``max_requests`` checks per identifier in each window of
    ``interval_ms`` milliseconds.

    Rejected checks do not consume quota.
    """

    def __init__(
        self,
        interval_ms: float,
        max_requests: int,
        *,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = _monotonic_ms,
        name: str = "default",
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.interval_ms = interval_ms
        self.max_requests = max_requests
        self.name = name
        self.store = store if store is not None else RateLimitStore()
        self._clock = clock
        self._lock = Lock()

    def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            entry = self.store.get(identifier)
            if entry is not None and now > entry.reset_at:
                self.store.delete(identifier)
                entry = None

            if entry is None:
                entry = RateLimitEntry(count=0, reset_at=now + self.interval_ms)
                self.store.set(identifier, entry)

            if entry.count >= self.max_requests:
                return RateLimitResult(success=False, remaining=0)

            entry.count += 1
            return RateLimitResult(success=True, remaining=self.max_requests - entry.count)

    def enforce(self, identifier: str) -> RateLimitResult:
        """Like ``check`` but raise RateLimitError when the quota is spent."""
        result = self.check(identifier)
        if not result.success:
            logger.warning("Rate limit '%s' exceeded for identifier", self.name)
            raise RateLimitError(remaining=result.remaining)
        return result

    def reset(self) -> None:
        with self._lock:
            self.store.clear()


@dataclass
class RateLimiters:
    """The limiters an application instance hands to its routes."""

    api: RateLimiter
    analysis: RateLimiter
    auth: RateLimiter

    @classmethod
    def create(cls, *, api_per_minute: int = 60, analysis_per_minute: int = 5) -> "RateLimiters":
        return cls(
            api=RateLimiter(60 * 1000, api_per_minute, name="api"),
            analysis=RateLimiter(60 * 1000, analysis_per_minute, name="analysis"),
            auth=RateLimiter(15 * 60 * 1000, 5, name="auth"),
        )
