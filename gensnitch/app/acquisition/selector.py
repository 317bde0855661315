"""
Acquisition strategy selector.

Given a source locator, return the ORIGINAL byte stream of the image or
fail with a typed ``AcquisitionError``.

Routing:

    data:        decoded locally, no remote call
    blob:/file:  delegated, elevated context first, then the page context
    http(s):     direct fetch when the origin is granted (requesting the
                 specific origin, then the broad grant); permission denied
                 if neither is granted; page context when the direct fetch
                 fails for any reason other than size or permission;
                 every redirect hop must land on a granted origin

The size ceiling is enforced as early as possible (declared
Content-Length) and always once the bytes are in hand.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import anyio
import httpx

from gensnitch.app.acquisition.contexts import LocalExecutionContext
from gensnitch.app.acquisition.errors import (
    AcquisitionErrorKind,
    ChannelError,
    PermissionDeniedError,
    SizeExceededError,
    StrategiesExhaustedError,
)
from gensnitch.app.acquisition.locators import (
    BROAD_ORIGIN_PATTERN,
    LocatorKind,
    classify_locator,
    decode_data_url,
    origin_pattern,
    sniff_media_type,
)
from gensnitch.app.acquisition.messaging import (
    DelegatedRequest,
    DelegatedRequestKind,
    DelegatedResponse,
    ExecutionChannel,
    dispatch,
)
from gensnitch.app.acquisition.permissions import HostPermissions, StaticHostPermissions
from gensnitch.app.acquisition.strategies import (
    FIDELITY_ORDER,
    RASTER_WARNING,
    HttpRequestPrimitives,
)
from gensnitch.app.config import GenSnitchConfig
from gensnitch.app.schemas.acquisition import (
    AcquiredImage,
    AcquisitionAttempt,
    ImageBuffer,
)

logger = logging.getLogger(__name__)

INLINE_METHOD = "inline-decode"
DIRECT_METHOD = "direct-fetch"


class ImageAcquirer:
    def __init__(
        self,
        *,
        permissions: HostPermissions,
        elevated_context: Optional[ExecutionChannel] = None,
        page_context: Optional[ExecutionChannel] = None,
        max_bytes: int = 25 * 1024 * 1024,
        timeout: float = 30.0,
        allow_raster: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._permissions = permissions
        self._elevated_context = elevated_context
        self._page_context = page_context
        self._max_bytes = max_bytes
        self._timeout = timeout
        self._allow_raster = allow_raster
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: GenSnitchConfig,
        *,
        page_context: Optional[ExecutionChannel] = None,
    ) -> "ImageAcquirer":
        timeout = config.FETCH_TIMEOUT_SECONDS

        if page_context is None:
            page_context = LocalExecutionContext(
                name="page",
                primitives=HttpRequestPrimitives(timeout=timeout),
                strategy_timeout=timeout,
            )

        return cls(
            permissions=StaticHostPermissions(
                granted=config.GRANTED_ORIGINS,
                grantable=config.GRANTABLE_ORIGINS,
            ),
            elevated_context=LocalExecutionContext(
                name="elevated",
                strategy_timeout=timeout,
                privileged=True,
            ),
            page_context=page_context,
            max_bytes=config.max_image_bytes,
            timeout=timeout,
            allow_raster=config.ENABLE_RASTER_FALLBACK,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(self, locator: str) -> AcquiredImage:
        kind = classify_locator(locator)
        logger.info("Acquiring %s locator %s", kind.value, locator[:80])

        if kind is LocatorKind.INLINE:
            data = decode_data_url(locator)
            self._check_size(len(data))
            attempt = AcquisitionAttempt(
                method=INLINE_METHOD,
                success=True,
                byte_count=len(data),
            )
            return self._build(data, INLINE_METHOD, True, [attempt])

        if kind is LocatorKind.REMOTE:
            return await self._acquire_remote(locator)

        return await self._delegate(
            locator,
            [
                (self._elevated_context, DelegatedRequestKind.FETCH_FILE),
                (self._page_context, DelegatedRequestKind.FETCH_RESOURCE),
            ],
        )

    # ------------------------------------------------------------------
    # Remote locators
    # ------------------------------------------------------------------

    async def _ensure_permission(self, locator: str) -> None:
        origin = origin_pattern(locator)

        if await self._permissions.contains([origin]):
            return
        if await self._permissions.request([origin]):
            return
        if await self._permissions.request([BROAD_ORIGIN_PATTERN]):
            return

        raise PermissionDeniedError(f"Host permission not granted for {origin}")

    async def _acquire_remote(self, locator: str) -> AcquiredImage:
        await self._ensure_permission(locator)

        try:
            data = await self._fetch_direct(locator)
        except (httpx.HTTPError, TimeoutError) as exc:
            error = str(exc) or type(exc).__name__
            logger.info("Direct fetch failed, using page context: %s", error)
            attempt = AcquisitionAttempt(
                method=DIRECT_METHOD,
                context="host",
                success=False,
                error=error,
            )
            return await self._delegate(
                locator,
                [(self._page_context, DelegatedRequestKind.FETCH_RESOURCE)],
                attempts=[attempt],
            )

        attempt = AcquisitionAttempt(
            method=DIRECT_METHOD,
            context="host",
            success=True,
            byte_count=len(data),
        )
        return self._build(data, DIRECT_METHOD, True, [attempt])

    async def _check_redirect_origin(self, request: httpx.Request) -> None:
        origin = origin_pattern(str(request.url))
        if not await self._permissions.contains([origin]):
            raise PermissionDeniedError(
                f"Redirect to {origin} is not covered by a host grant"
            )

    async def _fetch_direct(self, url: str) -> bytes:
        # Request hooks run before every hop, redirects included.
        with anyio.fail_after(self._timeout):
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
                event_hooks={"request": [self._check_redirect_origin]},
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    declared = response.headers.get("content-length", "")
                    if declared.isdigit():
                        self._check_size(int(declared))

                    data = await response.aread()

        self._check_size(len(data))
        return data

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    def _delegation_timeout(self, kind: DelegatedRequestKind) -> float:
        if kind is DelegatedRequestKind.FETCH_RESOURCE:
            # The context runs the whole chain, each strategy under its own bound.
            return self._timeout * (len(FIDELITY_ORDER) + 1)
        return self._timeout

    async def _delegate(
        self,
        locator: str,
        plan: Sequence[Tuple[Optional[ExecutionChannel], DelegatedRequestKind]],
        attempts: Optional[List[AcquisitionAttempt]] = None,
    ) -> AcquiredImage:
        attempts = list(attempts or [])
        errors: List[str] = []

        for channel, kind in plan:
            if channel is None:
                continue

            request = DelegatedRequest(
                kind=kind,
                locator=locator,
                max_bytes=self._max_bytes,
                allow_raster=self._allow_raster,
            )

            try:
                response = await dispatch(
                    channel, request, timeout=self._delegation_timeout(kind)
                )
            except ChannelError as exc:
                logger.debug("Delegation to %s failed: %s", channel.name, exc)
                attempts.append(
                    AcquisitionAttempt(
                        method=kind.value,
                        context=channel.name,
                        success=False,
                        error=str(exc),
                    )
                )
                errors.append(str(exc))
                continue

            attempts.extend(response.attempts)

            if response.error_kind is AcquisitionErrorKind.SIZE_EXCEEDED:
                raise SizeExceededError(_largest(response), self._max_bytes)

            if not response.success:
                if not response.attempts:
                    attempts.append(
                        AcquisitionAttempt(
                            method=kind.value,
                            context=channel.name,
                            success=False,
                            error=response.error,
                        )
                    )
                errors.append(f"{channel.name}: {response.error}")
                continue

            data = response.data or b""
            self._check_size(len(data))
            return self._build(
                data,
                response.method or kind.value,
                response.metadata_preserving,
                attempts,
            )

        raise StrategiesExhaustedError(
            "Could not fetch image bytes"
            + (f" ({'; '.join(errors)})" if errors else "")
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_size(self, size: int) -> None:
        if size > self._max_bytes:
            raise SizeExceededError(size, self._max_bytes)

    @staticmethod
    def _build(
        data: bytes,
        method: str,
        metadata_preserving: bool,
        attempts: List[AcquisitionAttempt],
    ) -> AcquiredImage:
        return AcquiredImage(
            buffer=ImageBuffer(data=data, media_type=sniff_media_type(data)),
            method=method,
            metadata_preserving=metadata_preserving,
            attempts=attempts,
            warnings=[] if metadata_preserving else [RASTER_WARNING],
        )


def _largest(response: DelegatedResponse) -> int:
    return max((a.byte_count for a in response.attempts), default=0)
