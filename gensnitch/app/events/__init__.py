"""
Progress events for a single image analysis.

The coordinator reports each phase (acquisition, every signal producer,
the final report) to an emitter. ``/analyze/stream`` hands clients a
``MemoryQueueEventEmitter`` and relays its queue as server-sent events;
plain ``/analyze`` calls use ``NullEventEmitter``.
"""

from .emitter import AnalysisEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter
from .models import AnalysisEvent, AnalysisEventType

__all__ = [
    "AnalysisEvent",
    "AnalysisEventType",
    "AnalysisEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
