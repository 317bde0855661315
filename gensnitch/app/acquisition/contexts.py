"""
In-process execution contexts.

``LocalExecutionContext`` answers delegated requests for the Python host.
Two instances are wired by default:

- ``elevated``: privileged, may read ``file:`` locators from disk;
- ``page``: unprivileged, retrieves resources through the strategy chain.

``blob:`` locators only exist inside the page that created them and
cannot be dereferenced in-process; requests for them fail, and the
selector reports the exhaustion. A host embedding GenSnitch next to a real
page supplies its own ``ExecutionChannel`` instead.
"""

from __future__ import annotations

import logging
from typing import Optional

import anyio

from gensnitch.app.acquisition.errors import AcquisitionErrorKind
from gensnitch.app.acquisition.locators import LocatorKind, classify_locator, file_locator_path
from gensnitch.app.acquisition.messaging import (
    DelegatedRequest,
    DelegatedRequestKind,
    DelegatedResponse,
)
from gensnitch.app.acquisition.strategies import RequestPrimitives, run_strategy_chain
from gensnitch.app.schemas.acquisition import AcquisitionAttempt

logger = logging.getLogger(__name__)

FILE_READ_METHOD = "file-read"


class LocalExecutionContext:
    def __init__(
        self,
        *,
        name: str,
        primitives: Optional[RequestPrimitives] = None,
        strategy_timeout: float = 30.0,
        privileged: bool = False,
    ) -> None:
        self.name = name
        self._primitives = primitives
        self._strategy_timeout = strategy_timeout
        self._privileged = privileged

    async def send(self, request: DelegatedRequest) -> DelegatedResponse:
        if request.kind is DelegatedRequestKind.PING:
            return DelegatedResponse(request_id=request.request_id, success=True)

        if request.kind is DelegatedRequestKind.FETCH_FILE:
            return await self._fetch_file(request)

        return await self._fetch_resource(request)

    # ------------------------------------------------------------------
    # fetch_file
    # ------------------------------------------------------------------

    async def _fetch_file(self, request: DelegatedRequest) -> DelegatedResponse:
        if not self._privileged:
            return DelegatedResponse.failure(
                request, f"{self.name} context has no file access"
            )

        if classify_locator(request.locator) is not LocatorKind.LOCAL_FILE:
            return DelegatedResponse.failure(
                request,
                f"{self.name} context cannot dereference {request.locator[:30]}",
            )

        path = anyio.Path(file_locator_path(request.locator))

        def failed(
            error: str,
            byte_count: int = 0,
            kind: Optional[AcquisitionErrorKind] = None,
        ) -> DelegatedResponse:
            attempt = AcquisitionAttempt(
                method=FILE_READ_METHOD,
                context=self.name,
                success=False,
                byte_count=byte_count,
                error=error,
            )
            return DelegatedResponse.failure(
                request, error, error_kind=kind, attempts=[attempt]
            )

        try:
            size = (await path.stat()).st_size
            if size > request.max_bytes:
                return failed(
                    f"File too large: {size} bytes",
                    size,
                    AcquisitionErrorKind.SIZE_EXCEEDED,
                )
            data = await path.read_bytes()
        except OSError as exc:
            return failed(str(exc))

        if len(data) > request.max_bytes:
            return failed(
                f"File too large: {len(data)} bytes",
                len(data),
                AcquisitionErrorKind.SIZE_EXCEEDED,
            )

        return DelegatedResponse(
            request_id=request.request_id,
            success=True,
            data=data,
            method=FILE_READ_METHOD,
            attempts=[
                AcquisitionAttempt(
                    method=FILE_READ_METHOD,
                    context=self.name,
                    success=True,
                    byte_count=len(data),
                )
            ],
        )

    # ------------------------------------------------------------------
    # fetch_resource
    # ------------------------------------------------------------------

    async def _fetch_resource(self, request: DelegatedRequest) -> DelegatedResponse:
        if self._primitives is None:
            return DelegatedResponse.failure(
                request, f"{self.name} context has no request primitives"
            )

        if classify_locator(request.locator) is not LocatorKind.REMOTE:
            return DelegatedResponse.failure(
                request,
                f"{self.name} context cannot dereference {request.locator[:30]}",
            )

        result = await run_strategy_chain(
            self._primitives,
            request.locator,
            timeout=self._strategy_timeout,
            max_bytes=request.max_bytes,
            allow_raster=request.allow_raster,
            context=self.name,
        )

        if result.size_exceeded:
            largest = max(a.byte_count for a in result.attempts)
            return DelegatedResponse.failure(
                request,
                f"Image too large: {largest} bytes (max {request.max_bytes})",
                error_kind=AcquisitionErrorKind.SIZE_EXCEEDED,
                attempts=result.attempts,
            )

        if not result.success:
            return DelegatedResponse.failure(
                request,
                "Could not fetch image bytes. The site may have strict "
                "security policies.",
                attempts=result.attempts,
            )

        if len(result.data) > request.max_bytes:
            return DelegatedResponse.failure(
                request,
                f"Image too large: {len(result.data)} bytes "
                f"(max {request.max_bytes})",
                error_kind=AcquisitionErrorKind.SIZE_EXCEEDED,
                attempts=result.attempts,
            )

        logger.info(
            "%s context fetched %d bytes via %s",
            self.name,
            len(result.data),
            result.method,
        )

        return DelegatedResponse(
            request_id=request.request_id,
            success=True,
            data=result.data,
            method=result.method,
            metadata_preserving=result.metadata_preserving,
            attempts=result.attempts,
        )
