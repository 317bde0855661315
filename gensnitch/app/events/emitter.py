from __future__ import annotations

from typing import Protocol

from gensnitch.app.events.models import AnalysisEvent


class AnalysisEventEmitter(Protocol):
    """
    Sink for the progress of one analysis.

    The coordinator awaits ``emit`` between phases, so a slow sink delays
    the report. Events describe what happened (bytes acquired, producer
    finished, report ready) and the verdict never depends on whether they
    were delivered.
    """

    async def emit(self, event: AnalysisEvent) -> None:
        ...


class NullEventEmitter:
    """Discards every event. Default for ``/analyze`` and the coordinator."""

    async def emit(self, event: AnalysisEvent) -> None:
        return
