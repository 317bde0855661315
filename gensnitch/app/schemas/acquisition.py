"""
Acquisition schemas.

Transport objects for the image acquisition stage:

- ``ImageBuffer``: the original, unmodified image bytes plus the media
  type sniffed from their magic number (never from a declared type).
- ``AcquisitionAttempt``: one retrieval strategy's outcome.
- ``AcquiredImage``: the buffer together with the attempts that led to it.

None of these objects are embedded in reports.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageBuffer(BaseModel):
    """
    Immutable raw image bytes.

    Owned exclusively by the analysis invocation that produced it.
    """

    data: bytes = Field(..., repr=False)

    media_type: Optional[str] = Field(
        None,
        description="MIME type inferred from the magic-number signature",
    )

    @property
    def size(self) -> int:
        return len(self.data)

    model_config = ConfigDict(frozen=True)


class AcquisitionAttempt(BaseModel):
    """
    Outcome of a single retrieval strategy.

    ``metadata_preserving`` is False only for the rasterizing fallback,
    which discards every embedded metadata block.
    """

    method: str = Field(..., description="Strategy identifier")

    context: Optional[str] = Field(
        None,
        description="Execution context the strategy ran in",
    )

    success: bool
    byte_count: int = 0
    metadata_preserving: bool = True
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AcquiredImage(BaseModel):
    buffer: ImageBuffer
    method: str
    metadata_preserving: bool = True
    attempts: List[AcquisitionAttempt] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)
