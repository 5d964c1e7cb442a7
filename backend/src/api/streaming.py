"""Server-Sent Events for long-running analyses.

The analysis runs as its own task and publishes to a ProgressChannel; the
response body drains the channel and ends with one ``complete`` or ``error``
event. When the client goes away the body generator is closed, which closes
the channel and cancels the task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict

from fastapi.responses import StreamingResponse

from analyzer.pipeline import ProgressChannel, to_sse
from core.errors import AppError, ErrorKind

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

AnalysisRunner = Callable[[ProgressChannel], Awaitable[Dict[str, Any]]]


def error_event(exc: BaseException, fallback: str) -> Dict[str, Any]:
    if isinstance(exc, AppError):
        return {"type": "error", "error": exc.message, "code": exc.kind.value}
    return {"type": "error", "error": fallback, "code": ErrorKind.INTERNAL.value}


async def _events(
    channel: ProgressChannel,
    task: "asyncio.Task[Dict[str, Any]]",
    fallback_error: str,
) -> AsyncIterator[str]:
    try:
        async for event in channel:
            yield to_sse(event.to_payload())
        try:
            result = await task
        except AppError as exc:
            logger.warning("Streamed analysis failed: %s", exc)
            yield to_sse(error_event(exc, fallback_error))
        except Exception as exc:
            logger.exception("Streamed analysis failed")
            yield to_sse(error_event(exc, fallback_error))
        else:
            yield to_sse({"type": "complete", **result})
    finally:
        channel.close()
        if not task.done():
            logger.info("Client disconnected; cancelling analysis")
            task.cancel()


def stream_analysis(
    run: AnalysisRunner,
    fallback_error: str = "Failed to analyze contributions",
) -> StreamingResponse:
    """Start ``run`` in the background and stream its progress as SSE."""
    channel = ProgressChannel()

    async def _run() -> Dict[str, Any]:
        try:
            return await run(channel)
        finally:
            channel.close()

    task = asyncio.create_task(_run())
    return StreamingResponse(
        _events(channel, task, fallback_error),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
