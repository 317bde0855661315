"""
Delegated execution messages.

Some locators can only be dereferenced by code running in another
execution context (a privileged helper, or the page that owns the
resource). Delegation is an explicit request/response exchange over an
asynchronous channel:

- requests have a closed set of kinds with typed payloads;
- the caller awaits exactly one response whose ``request_id`` matches;
- a timeout, a mismatched response or a transport failure is a
  ``ChannelError``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Protocol
from uuid import uuid4

import anyio
from pydantic import BaseModel, ConfigDict, Field, model_validator

from gensnitch.app.acquisition.errors import AcquisitionErrorKind, ChannelError
from gensnitch.app.schemas.acquisition import AcquisitionAttempt

logger = logging.getLogger(__name__)


class DelegatedRequestKind(str, Enum):
    FETCH_FILE = "fetch_file"
    FETCH_RESOURCE = "fetch_resource"
    PING = "ping"


class DelegatedRequest(BaseModel):
    request_id: str = Field(default_factory=lambda: uuid4().hex)
    kind: DelegatedRequestKind
    locator: Optional[str] = None
    max_bytes: int = Field(..., gt=0)
    allow_raster: bool = True

    @model_validator(mode="after")
    def fetches_need_locator(self):
        if self.kind is not DelegatedRequestKind.PING and not self.locator:
            raise ValueError(f"{self.kind.value} requests require a locator")
        return self

    model_config = ConfigDict(frozen=True, extra="forbid")


class DelegatedResponse(BaseModel):
    request_id: str
    success: bool
    data: Optional[bytes] = Field(None, repr=False)
    method: Optional[str] = None
    metadata_preserving: bool = True
    attempts: List[AcquisitionAttempt] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[AcquisitionErrorKind] = None

    @model_validator(mode="after")
    def failures_carry_error(self):
        if not self.success and not self.error:
            raise ValueError("Failed responses must carry an error message")
        return self

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def failure(
        cls,
        request: DelegatedRequest,
        error: str,
        *,
        error_kind: Optional[AcquisitionErrorKind] = None,
        attempts: Optional[List[AcquisitionAttempt]] = None,
    ) -> "DelegatedResponse":
        return cls(
            request_id=request.request_id,
            success=False,
            error=error,
            error_kind=error_kind,
            attempts=attempts or [],
        )


class ExecutionChannel(Protocol):
    """
    A context that can run delegated requests.

    ``name`` identifies the context in acquisition attempts.
    """

    name: str

    async def send(self, request: DelegatedRequest) -> DelegatedResponse:
        ...


async def dispatch(
    channel: ExecutionChannel,
    request: DelegatedRequest,
    *,
    timeout: float,
) -> DelegatedResponse:
    """Send one request and await its single matching response."""
    try:
        with anyio.fail_after(timeout):
            response = await channel.send(request)
    except TimeoutError as exc:
        raise ChannelError(
            f"{channel.name}: no response within {timeout:g}s"
        ) from exc
    except OSError as exc:
        raise ChannelError(f"{channel.name}: {exc}") from exc

    if response.request_id != request.request_id:
        raise ChannelError(
            f"{channel.name}: response {response.request_id} does not match "
            f"request {request.request_id}"
        )

    logger.debug(
        "%s answered %s (success=%s)",
        channel.name,
        request.kind.value,
        response.success,
    )
    return response
