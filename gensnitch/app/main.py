"""
FastAPI entrypoint for the GenSnitch service.

This module defines the HTTP interface for image forensics. It accepts an
image locator or an uploaded image, invokes the central coordinator, and
returns a structured Report.

The service is stateless: reports are returned to the caller and never
persisted. Absence of evidence is not evidence of authenticity.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Set

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from starlette.responses import Response

from gensnitch.app.config import GenSnitchConfig
from gensnitch.app.coordinator.coordinator import (
    AnalysisCoordinator,
    generate_report_id,
)

# Events / streaming
from gensnitch.app.events import MemoryQueueEventEmitter


# ---------------------------------------------------------------------------
# Presentation helpers (presentation-only)
# ---------------------------------------------------------------------------

def pretty_json(data: Any) -> str:
    return json.dumps(
        data,
        ensure_ascii=False,
        allow_nan=False,
        indent=2,
        separators=(", ", ": "),
    )


class PrettyJSONResponse(Response):
    """Pretty-printed JSON response for human-readable console output."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return pretty_json(content).encode("utf-8")


class AnalyzeRequest(BaseModel):
    url: str = Field(
        ...,
        min_length=1,
        description="Image locator: data:, blob:, file:, http: or https:",
    )


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GenSnitch",
    description="Metadata and provenance forensics for AI-generated images",
    version="0.1.0",
)

# Strong references to in-flight streaming analyses
_background_tasks: Set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------

@app.on_event("startup")
def startup_event() -> None:
    """
    Application startup hook.

    Configuration is loaded once and treated as immutable for the lifetime
    of the process. The manifest verifier and trust list are initialized
    lazily on first use.
    """
    config = GenSnitchConfig.from_env()

    app.state.config = config
    app.state.coordinator = AnalysisCoordinator.from_config(config)


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

def _report_response(report) -> PrettyJSONResponse:
    return PrettyJSONResponse(content=report.model_dump(by_alias=True, mode="json"))


@app.post(
    "/analyze",
    response_class=PrettyJSONResponse,
    summary="Analyze the image behind a locator",
)
async def analyze_locator(body: AnalyzeRequest) -> PrettyJSONResponse:
    """
    Acquire and analyze an image.

    Acquisition and analysis failures are reported as an ERROR verdict,
    not as an HTTP error.
    """
    coordinator: AnalysisCoordinator = app.state.coordinator
    return _report_response(await coordinator.analyze(body.url))


@app.post(
    "/analyze/upload",
    response_class=PrettyJSONResponse,
    summary="Analyze an uploaded image",
)
async def analyze_upload(
    image: UploadFile = File(..., description="Image file to analyze"),
) -> PrettyJSONResponse:
    try:
        data = await image.read()
    except OSError as exc:
        raise HTTPException(
            status_code=400,
            detail="Failed to read uploaded image",
        ) from exc

    if not data:
        raise HTTPException(
            status_code=400,
            detail="Uploaded image is empty",
        )

    coordinator: AnalysisCoordinator = app.state.coordinator
    report = await coordinator.analyze_bytes(
        data, f"upload:{image.filename or 'image'}"
    )
    return _report_response(report)


# ---------------------------------------------------------------------------
# Streaming Analysis (SSE)
# ---------------------------------------------------------------------------

@app.post(
    "/analyze/stream",
    summary="Analyze the image behind a locator (streaming progress)",
)
async def analyze_locator_stream(body: AnalyzeRequest) -> StreamingResponse:
    """
    Analyze while streaming progress events.

    Client disconnects do NOT cancel the analysis. The final
    analysis_completed / analysis_failed event carries the report.
    """
    coordinator: AnalysisCoordinator = app.state.coordinator
    emitter = MemoryQueueEventEmitter()

    task = asyncio.create_task(
        coordinator.analyze(
            body.url,
            emitter=emitter,
            report_id=generate_report_id(),
        )
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    async def event_stream():
        async for event in emitter.stream():
            yield event.to_sse_payload()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check() -> JSONResponse:
    """Simple health check endpoint."""
    return JSONResponse(
        content={
            "status": "ok",
            "service": "gensnitch",
        }
    )
