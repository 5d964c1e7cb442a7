"""Progress reporting for long-running analyses.

The pipeline publishes ``ProgressEvent`` objects to a ``ProgressChannel``;
the transport (SSE today) drains the channel. Publishing to a closed channel
is a no-op so a disconnected client never breaks the analysis.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class ProgressEvent:
    step: str
    current: int
    total: int
    message: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "progress", **asdict(self)}


class ProgressChannel:
    """Single-consumer queue of progress events."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ProgressEvent) -> bool:
        """Queue an event. Returns False when it was dropped."""
        if self._closed:
            logger.debug("Dropping progress event on closed channel: %s", event.message)
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Progress channel full, dropping event: %s", event.message)
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Consumer is gone or far behind; it will stop on the closed flag.
            pass

    async def get(self) -> Optional[ProgressEvent]:
        """Next event, or None once the channel is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


def publish(channel: Optional[ProgressChannel], step: str, current: int, total: int, message: str) -> None:
    if channel is not None:
        channel.publish(ProgressEvent(step=step, current=current, total=total, message=message))


def to_sse(payload: Dict[str, Any]) -> str:
    """Format one Server-Sent Events frame."""
    return f"data: {json.dumps(payload, default=str)}\n\n"
