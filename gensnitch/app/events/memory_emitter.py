from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from gensnitch.app.events.emitter import AnalysisEventEmitter
from gensnitch.app.events.models import TERMINAL_EVENT_TYPES, AnalysisEvent


class MemoryQueueEventEmitter(AnalysisEventEmitter):
    """
    Buffers one analysis's events for the SSE endpoint.

    A single reader drains ``stream()`` in emission order. The stream ends
    after ``analysis_completed`` or ``analysis_failed``, both of which carry
    the report; events emitted after that are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[AnalysisEvent]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: AnalysisEvent) -> None:
        if self._closed:
            return

        # Unbounded queue: never blocks, never raises QueueFull.
        self._queue.put_nowait(event)

        if event.event_type in TERMINAL_EVENT_TYPES:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[AnalysisEvent]:
        """Yield events until the analysis reaches a terminal event."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
