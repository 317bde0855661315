"""
Report schema.

Defines the single forensic report produced for one analyzed image.

The report captures:
- the fused verdict and its confidence bucket,
- the three independent signal sets the verdict was derived from,
- an ordered list of human-readable notes.

A report is created once and never mutated. Absence of evidence is not
evidence of authenticity; NO_EVIDENCE never means "authentic".
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, model_validator

from gensnitch.app.schemas.signals import (
    SIGNAL_MODEL_CONFIG,
    AnalysisSignals,
)


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class Verdict(str, Enum):
    AI_EVIDENCE = "AI_EVIDENCE"
    NO_EVIDENCE = "NO_EVIDENCE"
    ERROR = "ERROR"


class Confidence(str, Enum):
    """
    Coarse quantization of the internal evidence score.

    Expresses confidence in the analysis, not in the image.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# Top-Level Report (PUBLIC, FROZEN CONTRACT)
# ---------------------------------------------------------------------------

class Report(BaseModel):
    """
    Forensic verdict for a single image.

    JSON shape:
        {id, url, timestamp, verdict, confidence,
         signals: {c2pa, metadata, pngText}, notes, version}
    """

    id: str = Field(..., description="Unique report identifier")

    url: str = Field(..., description="Source locator that was analyzed")

    timestamp: int = Field(
        ...,
        description="Creation time in milliseconds since the Unix epoch",
    )

    verdict: Verdict
    confidence: Confidence
    signals: AnalysisSignals

    notes: List[str] = Field(
        default_factory=list,
        description="Ordered human-readable notes, displayed verbatim",
    )

    version: str = Field(..., description="Report schema version")

    @model_validator(mode="after")
    def enforce_error_confidence(self):
        if self.verdict is Verdict.ERROR and self.confidence is not Confidence.LOW:
            raise ValueError("ERROR verdicts must carry low confidence")
        return self

    model_config = SIGNAL_MODEL_CONFIG
