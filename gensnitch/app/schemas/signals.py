"""
Signal schemas.

Defines the three independent signal sets consumed by verdict fusion:

- the content-provenance (C2PA) manifest signal,
- the EXIF/XMP metadata signal,
- the PNG text-chunk signal.

Each signal is produced by exactly one analyzer and is immutable once
produced. Signals carry no cross-references to one another.

JSON field names are camelCase (``claimGenerator``, ``aiIndicators``,
``pngText``) to match the published report shape.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


SIGNAL_MODEL_CONFIG = ConfigDict(
    frozen=True,
    extra="forbid",
    alias_generator=to_camel,
    populate_by_name=True,
)


# ---------------------------------------------------------------------------
# Enumerations (two orthogonal axes)
# ---------------------------------------------------------------------------

class ValidationStatus(str, Enum):
    """
    Cryptographic tamper-evidence axis.

    ``valid`` means the manifest signature verified and the content was
    not modified after signing. It says nothing about who signed.
    """

    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


class TrustLevel(str, Enum):
    """
    Issuer trust-registry membership axis.

    Independent of ValidationStatus: ``valid`` + ``untrusted`` means
    "not tampered, but signer unrecognized".
    """

    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# C2PA manifest signal
# ---------------------------------------------------------------------------

class CertificateInfo(BaseModel):
    subject: Optional[str] = None
    issuer: Optional[str] = None
    serial_number: Optional[str] = None

    model_config = SIGNAL_MODEL_CONFIG


class ManifestSummary(BaseModel):
    """
    Human-readable projection of the active manifest.

    Produced only by the manifest trust classifier from a raw manifest
    store it does not own.
    """

    claim_generator: Optional[str] = Field(
        None,
        description="Tool that produced the manifest claim",
    )

    issuer: Optional[str] = Field(
        None,
        description="Issuer named in the signature info",
    )

    certificate: Optional[CertificateInfo] = None

    actions: List[str] = Field(
        default_factory=list,
        description="Deduplicated action labels from action assertions",
    )

    ai_assertions: List[str] = Field(
        default_factory=list,
        description="Deduplicated labels indicating AI involvement",
    )

    ingredients: List[str] = Field(
        default_factory=list,
        description="Titles of the first five ingredients",
    )

    model_config = SIGNAL_MODEL_CONFIG


class C2PAResult(BaseModel):
    """
    Outcome of manifest verification and trust classification.

    ``available`` is False only when the verification capability itself
    could not be used; this is a soft failure and fusion treats it as
    "no provenance signal".
    """

    available: bool = Field(
        ...,
        description="Whether manifest verification could run at all",
    )

    present: bool = Field(
        ...,
        description="Whether a manifest was found in the image",
    )

    validated: ValidationStatus = ValidationStatus.UNKNOWN
    trust: TrustLevel = TrustLevel.UNKNOWN

    summary: Optional[ManifestSummary] = None
    raw: Optional[Dict[str, Any]] = None
    errors: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def enforce_presence_invariants(self):
        if self.present and not self.available:
            raise ValueError(
                "A manifest cannot be present when verification is unavailable"
            )
        if not self.present and self.summary is not None:
            raise ValueError("summary requires a present manifest")
        return self

    model_config = SIGNAL_MODEL_CONFIG


# ---------------------------------------------------------------------------
# EXIF / XMP metadata signal
# ---------------------------------------------------------------------------

class MetadataResult(BaseModel):
    found: bool = False
    software: Optional[str] = None
    artist: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    creator_tool: Optional[str] = None
    ai_indicators: List[str] = Field(default_factory=list)
    raw_fields: Optional[Dict[str, Any]] = None

    model_config = SIGNAL_MODEL_CONFIG


# ---------------------------------------------------------------------------
# PNG text-chunk signal
# ---------------------------------------------------------------------------

class TextChunk(BaseModel):
    """A single extracted text chunk, capped for display."""

    key: str
    value: str
    truncated: bool = False

    model_config = SIGNAL_MODEL_CONFIG


class PngTextResult(BaseModel):
    found: bool = False
    chunks: List[TextChunk] = Field(default_factory=list)
    ai_indicators: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def enforce_not_found_is_empty(self):
        if not self.found and (self.chunks or self.ai_indicators):
            raise ValueError(
                "chunks and aiIndicators must be empty when found is False"
            )
        return self

    model_config = SIGNAL_MODEL_CONFIG


# ---------------------------------------------------------------------------
# Fusion input
# ---------------------------------------------------------------------------

class AnalysisSignals(BaseModel):
    """Read-only triple of independently produced signals."""

    c2pa: C2PAResult
    metadata: MetadataResult
    png_text: PngTextResult

    model_config = SIGNAL_MODEL_CONFIG
