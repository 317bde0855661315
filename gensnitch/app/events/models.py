from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class AnalysisEventType(str, Enum):
    """
    Progression events emitted during one image analysis.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Global Analysis Lifecycle
    # ------------------------------------------------------------------
    ANALYSIS_STARTED = "analysis_started"
    ANALYSIS_COMPLETED = "analysis_completed"
    ANALYSIS_FAILED = "analysis_failed"

    # ------------------------------------------------------------------
    # Acquisition Phase
    # ------------------------------------------------------------------
    ACQUISITION_STARTED = "acquisition_started"
    ACQUISITION_COMPLETED = "acquisition_completed"
    ACQUISITION_FAILED = "acquisition_failed"

    # ------------------------------------------------------------------
    # Signal Producers (details name the producer)
    # ------------------------------------------------------------------
    SIGNAL_COMPLETED = "signal_completed"


TERMINAL_EVENT_TYPES = frozenset(
    {
        AnalysisEventType.ANALYSIS_COMPLETED,
        AnalysisEventType.ANALYSIS_FAILED,
    }
)


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class AnalysisEvent(BaseModel):
    """
    An immutable observation of a phase transition within one analysis.

    Events are strictly observational and never influence the verdict.
    """

    event_id: UUID = Field(default_factory=uuid4)
    analysis_id: str = Field(..., description="The report identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: AnalysisEventType

    # Optional contextual metadata (producer, method, byte counts, report)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_sse_payload(self) -> str:
        """Render as one server-sent event frame."""
        data = json.dumps(self.model_dump(mode="json"), ensure_ascii=False)
        return f"event: {self.event_type.value}\ndata: {data}\n\n"
