"""
Acquisition error taxonomy.

Every acquisition failure is fatal to the analysis invocation and is
surfaced as an ERROR-verdict report carrying the message. Each failure
kind is a distinct exception so callers (and tests) can tell them apart.

``ChannelError`` is different: it describes a delegated-execution
channel failure (timeout, mismatched response, transport error) and is
always converted into a failed attempt by the selector. It never escapes
acquisition on its own.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class AcquisitionErrorKind(str, Enum):
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    INVALID_LOCATOR = "invalid_locator"
    PERMISSION_DENIED = "permission_denied"
    SIZE_EXCEEDED = "size_exceeded"
    STRATEGIES_EXHAUSTED = "strategies_exhausted"


class AcquisitionError(Exception):
    """Base class for fatal acquisition failures."""

    kind: ClassVar[AcquisitionErrorKind]

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnsupportedSchemeError(AcquisitionError):
    kind = AcquisitionErrorKind.UNSUPPORTED_SCHEME


class InvalidLocatorError(AcquisitionError):
    kind = AcquisitionErrorKind.INVALID_LOCATOR


class PermissionDeniedError(AcquisitionError):
    kind = AcquisitionErrorKind.PERMISSION_DENIED


class SizeExceededError(AcquisitionError):
    kind = AcquisitionErrorKind.SIZE_EXCEEDED

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Image too large: {size} bytes (max {limit})")
        self.size = size
        self.limit = limit


class StrategiesExhaustedError(AcquisitionError):
    kind = AcquisitionErrorKind.STRATEGIES_EXHAUSTED


class ChannelError(Exception):
    """A delegated request got no usable response."""
