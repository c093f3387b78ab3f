"""
Progress streaming for long-running generations.

A ProgressStream is the bridge between a generation task and one SSE
response. The task pushes progress messages and then exactly one result or
error; the HTTP side iterates events() and forwards SSE-formatted bytes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Optional, Tuple

import json_utils as json


logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 15

EVENT_PROGRESS = "progress"
EVENT_RESULT = "result"
EVENT_ERROR = "error"

# Queue sentinel marking the end of the stream
_END = None


class ProgressChannelClosed(RuntimeError):
    """The consumer went away; the producing task should stop."""


def format_sse(event: str, data: str) -> bytes:
    """Format a named SSE event. Multi-line data becomes several data: lines."""
    lines = (data or "").split("\n")
    body = "".join(f"data: {line}\n" for line in lines)
    return f"event: {event}\n{body}\n".encode("utf-8")


class ProgressStream:
    """
    Queue-backed SSE channel for one generation.

    The producer side (progress/result/error) never blocks. Once result() or
    error() has been called, or the consumer has disconnected, the stream is
    closed and further progress() calls raise ProgressChannelClosed.
    """

    def __init__(self, request_id: str, heartbeat_interval: float = HEARTBEAT_INTERVAL):
        self.request_id = request_id
        self.heartbeat_interval = heartbeat_interval
        self._queue: asyncio.Queue[Optional[Tuple[str, str]]] = asyncio.Queue()
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def progress(self, message: str) -> None:
        if self._closed or self._finished:
            raise ProgressChannelClosed(f"Progress channel {self.request_id[:8]} is closed")
        await self._queue.put((EVENT_PROGRESS, message))

    async def result(self, payload: Any) -> None:
        """Send the final document (a pydantic model or plain JSON data) and end the stream."""
        if hasattr(payload, "model_dump"):
            payload = payload.model_dump(mode="json", by_alias=True)
        await self._finish(EVENT_RESULT, json.dumps(payload))

    async def error(self, public_message: str) -> None:
        await self._finish(EVENT_ERROR, public_message)

    async def _finish(self, event: str, data: str) -> None:
        if self._finished:
            logger.debug("Stream %s already finished; dropping %s event", self.request_id[:8], event)
            return
        self._finished = True
        if self._closed:
            return
        await self._queue.put((event, data))
        await self._queue.put(_END)

    def close(self) -> None:
        """Mark the consumer side gone."""
        self._closed = True

    async def events(self) -> AsyncGenerator[bytes, None]:
        """Yield SSE-formatted bytes until the terminal event, with heartbeats during silence."""
        try:
            while True:
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=self.heartbeat_interval)
                except asyncio.TimeoutError:
                    yield b": heartbeat\n\n"
                    continue

                if item is _END:
                    break
                event, data = item
                yield format_sse(event, data)
        finally:
            # Normal end, client disconnect or cancellation
            self.close()
