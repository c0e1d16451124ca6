"""Server-sent event stream tied to one client connection.

Producers :meth:`~EventStream.push` textual payloads; the HTTP response
drains them in FIFO order through :meth:`~EventStream.send`.  Closing is
idempotent.  When the consumer goes away first, later pushes become
no-ops and the producer is left to finish on its own.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

_CLOSE = object()


def format_sse(data: str) -> str:
    """Render one payload as an SSE frame; newlines become extra ``data:`` lines."""
    return "".join(f"data: {line}\n" for line in data.split("\n")) + "\n"


class EventStream:
    """Ordered, append-only sequence of textual events with a single close."""

    def __init__(self) -> None:
        self.stream_id = uuid4().hex
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._disconnected = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    async def push(self, data: str) -> None:
        """Append *data*; ignored once the stream is closed or the client left."""
        if self._closed or self._disconnected:
            logger.debug("Dropping event on finished stream %s", self.stream_id)
            return
        self._queue.put_nowait(data)

    async def push_json(self, payload: Any) -> None:
        await self.push(json.dumps(payload))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    async def send(self) -> AsyncIterator[str]:
        """Yield SSE frames in push order until the stream is closed."""
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSE:
                    return
                yield format_sse(item)
        finally:
            if not self._closed:
                logger.info("Client left stream %s before it closed", self.stream_id)
                self._disconnected = True

    def to_response(self) -> StreamingResponse:
        return StreamingResponse(
            self.send(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
