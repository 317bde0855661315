import json

import pytest

from gensnitch.app.events import (
    AnalysisEvent,
    AnalysisEventType,
    MemoryQueueEventEmitter,
    NullEventEmitter,
)

pytestmark = pytest.mark.anyio


def event(event_type, **details):
    return AnalysisEvent(
        analysis_id="abc-123456",
        event_type=event_type,
        details=details or None,
    )


async def test_memory_emitter_preserves_order_and_closes_on_terminal_event():
    emitter = MemoryQueueEventEmitter()

    await emitter.emit(event(AnalysisEventType.ANALYSIS_STARTED))
    await emitter.emit(event(AnalysisEventType.SIGNAL_COMPLETED, producer="c2pa"))
    await emitter.emit(event(AnalysisEventType.ANALYSIS_COMPLETED))
    await emitter.emit(event(AnalysisEventType.ANALYSIS_STARTED))

    received = [e.event_type async for e in emitter.stream()]

    assert emitter.closed
    assert received == [
        AnalysisEventType.ANALYSIS_STARTED,
        AnalysisEventType.SIGNAL_COMPLETED,
        AnalysisEventType.ANALYSIS_COMPLETED,
    ]


async def test_failure_is_terminal():
    emitter = MemoryQueueEventEmitter()

    await emitter.emit(event(AnalysisEventType.ANALYSIS_FAILED, error="boom"))

    assert emitter.closed


async def test_null_emitter_accepts_anything():
    await NullEventEmitter().emit(event(AnalysisEventType.ANALYSIS_STARTED))


def test_sse_frame():
    frame = event(AnalysisEventType.ACQUISITION_COMPLETED, method="inline-decode")

    header, data, blank, end = frame.to_sse_payload().split("\n")

    assert header == "event: acquisition_completed"
    assert (blank, end) == ("", "")
    payload = json.loads(data[len("data: "):])
    assert payload["analysis_id"] == "abc-123456"
    assert payload["details"] == {"method": "inline-decode"}
