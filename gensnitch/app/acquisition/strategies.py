"""
Retrieval strategies.

Inside a context that retrieves bytes over a request/response channel,
strategies are tried in strict fidelity order, most faithful first:

    1. request API, no credentials
    2. lower-level request API, no credentials
    3. request API, with credentials
    4. lower-level request API, with credentials
    5. rasterize and re-encode (only if 1-4 all failed)

Strategy 5 discards every embedded metadata block (EXIF, XMP, provenance
manifest). Its attempt is flagged ``metadata_preserving=False`` and the
chain attaches a warning; it exists so "no signal found" can still be
reported instead of a hard failure.

Each strategy runs under its own bound. Exceeding it fails that strategy
only; the driver moves on to the next one.

The size ceiling travels with every call. A declared Content-Length over
the ceiling is rejected before the body is read, and a body that grows
past it is abandoned mid-read. Either way the whole chain stops.
"""

from __future__ import annotations

import io
import logging
from typing import (
    Awaitable,
    Callable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
)

import aiohttp
import anyio
import httpx
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from gensnitch.app.acquisition.errors import SizeExceededError
from gensnitch.app.schemas.acquisition import AcquisitionAttempt

logger = logging.getLogger(__name__)

RASTER_WARNING = (
    "Image bytes were obtained by re-encoding the rendered image; "
    "C2PA, EXIF, XMP and PNG text metadata were lost"
)


class RequestPrimitives(Protocol):
    """Host-provided fetch primitives of varying capability."""

    async def request(
        self, url: str, *, credentials: bool, max_bytes: Optional[int] = None
    ) -> bytes:
        ...

    async def low_level_request(
        self, url: str, *, credentials: bool, max_bytes: Optional[int] = None
    ) -> bytes:
        ...

    async def rasterize(self, url: str, *, max_bytes: Optional[int] = None) -> bytes:
        ...


class RetrievalStrategy(NamedTuple):
    name: str
    run: Callable[[RequestPrimitives, str, Optional[int]], Awaitable[bytes]]
    metadata_preserving: bool = True


FIDELITY_ORDER: Sequence[RetrievalStrategy] = (
    RetrievalStrategy(
        "fetch-no-creds",
        lambda p, url, limit: p.request(url, credentials=False, max_bytes=limit),
    ),
    RetrievalStrategy(
        "lowlevel-no-creds",
        lambda p, url, limit: p.low_level_request(
            url, credentials=False, max_bytes=limit
        ),
    ),
    RetrievalStrategy(
        "fetch-with-creds",
        lambda p, url, limit: p.request(url, credentials=True, max_bytes=limit),
    ),
    RetrievalStrategy(
        "lowlevel-with-creds",
        lambda p, url, limit: p.low_level_request(
            url, credentials=True, max_bytes=limit
        ),
    ),
)

RASTER_STRATEGY = RetrievalStrategy(
    "raster-metadata-lost",
    lambda p, url, limit: p.rasterize(url, max_bytes=limit),
    metadata_preserving=False,
)

# Failures a strategy may legitimately hit. Anything else is a bug and
# propagates.
RETRIEVAL_ERRORS = (
    httpx.HTTPError,
    aiohttp.ClientError,
    OSError,
    Image.DecompressionBombError,
)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

class StrategyOutcome(NamedTuple):
    attempt: AcquisitionAttempt
    data: Optional[bytes] = None
    size_exceeded: bool = False


class ChainResult(BaseModel):
    data: Optional[bytes] = Field(None, repr=False)
    method: Optional[str] = None
    metadata_preserving: bool = True
    attempts: List[AcquisitionAttempt] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    size_exceeded: bool = False

    @property
    def success(self) -> bool:
        return self.data is not None

    model_config = ConfigDict(frozen=True)


async def run_strategy(
    strategy: RetrievalStrategy,
    primitives: RequestPrimitives,
    url: str,
    *,
    timeout: float,
    max_bytes: Optional[int] = None,
    context: Optional[str] = None,
) -> StrategyOutcome:
    def failed(
        error: str, byte_count: int = 0, size_exceeded: bool = False
    ) -> StrategyOutcome:
        logger.debug("Strategy %s failed: %s", strategy.name, error)
        return StrategyOutcome(
            AcquisitionAttempt(
                method=strategy.name,
                context=context,
                success=False,
                byte_count=byte_count,
                metadata_preserving=strategy.metadata_preserving,
                error=error,
            ),
            size_exceeded=size_exceeded,
        )

    try:
        with anyio.fail_after(timeout):
            data = await strategy.run(primitives, url, max_bytes)
    except SizeExceededError as exc:
        return failed(str(exc), exc.size, size_exceeded=True)
    except TimeoutError:
        return failed(f"timed out after {timeout:g}s")
    except RETRIEVAL_ERRORS as exc:
        return failed(str(exc) or type(exc).__name__)

    return StrategyOutcome(
        AcquisitionAttempt(
            method=strategy.name,
            context=context,
            success=True,
            byte_count=len(data),
            metadata_preserving=strategy.metadata_preserving,
        ),
        data,
    )


async def run_strategy_chain(
    primitives: RequestPrimitives,
    url: str,
    *,
    timeout: float,
    max_bytes: Optional[int] = None,
    allow_raster: bool = True,
    context: Optional[str] = None,
) -> ChainResult:
    """Try each strategy in order; stop at the first success or oversized resource."""
    strategies = list(FIDELITY_ORDER)
    if allow_raster:
        strategies.append(RASTER_STRATEGY)

    attempts: List[AcquisitionAttempt] = []

    for strategy in strategies:
        if not strategy.metadata_preserving:
            logger.warning(
                "All metadata-preserving strategies failed for %s; "
                "falling back to %s",
                url[:100],
                strategy.name,
            )

        outcome = await run_strategy(
            strategy,
            primitives,
            url,
            timeout=timeout,
            max_bytes=max_bytes,
            context=context,
        )
        attempts.append(outcome.attempt)

        if outcome.size_exceeded:
            return ChainResult(attempts=attempts, size_exceeded=True)

        if outcome.data is not None:
            return ChainResult(
                data=outcome.data,
                method=strategy.name,
                metadata_preserving=strategy.metadata_preserving,
                attempts=attempts,
                warnings=[] if strategy.metadata_preserving else [RASTER_WARNING],
            )

    return ChainResult(attempts=attempts)


# ---------------------------------------------------------------------------
# HTTP primitives
# ---------------------------------------------------------------------------

def reencode_as_png(data: bytes) -> bytes:
    """Decode to pixels and re-encode; nothing but pixels survives."""
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        pixels = image.convert("RGBA")

    out = io.BytesIO()
    pixels.save(out, format="PNG")
    return out.getvalue()


class HttpRequestPrimitives:
    """
    Fetch primitives for the in-process context.

    httpx plays the request API, aiohttp the lower-level API. The
    "credentials" variants send the configured cookies and headers.
    Clients and sessions are scoped to each call.
    """

    def __init__(
        self,
        *,
        timeout: float,
        cookies: Optional[Mapping[str, str]] = None,
        credential_headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._cookies = dict(cookies or {})
        self._credential_headers = dict(credential_headers or {})
        self._transport = transport

    async def request(
        self, url: str, *, credentials: bool, max_bytes: Optional[int] = None
    ) -> bytes:
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
            cookies=self._cookies if credentials else None,
            headers=self._credential_headers if credentials else None,
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()

                declared = response.headers.get("content-length", "")
                if declared.isdigit():
                    _check_size(int(declared), max_bytes)

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    _check_size(len(body), max_bytes)
                return bytes(body)

    async def low_level_request(
        self, url: str, *, credentials: bool, max_bytes: Optional[int] = None
    ) -> bytes:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self._timeout),
            cookies=self._cookies if credentials else None,
            headers=self._credential_headers if credentials else None,
            raise_for_status=True,
        ) as session:
            async with session.get(url) as response:
                if response.content_length is not None:
                    _check_size(response.content_length, max_bytes)

                body = bytearray()
                async for chunk in response.content.iter_chunked(64 * 1024):
                    body.extend(chunk)
                    _check_size(len(body), max_bytes)
                return bytes(body)

    async def rasterize(self, url: str, *, max_bytes: Optional[int] = None) -> bytes:
        # Load the image the way an image element would, then keep only
        # its pixels.
        data = await self.request(url, credentials=True, max_bytes=max_bytes)
        return await anyio.to_thread.run_sync(reencode_as_png, data)


def _check_size(size: int, max_bytes: Optional[int]) -> None:
    if max_bytes is not None and size > max_bytes:
        raise SizeExceededError(size, max_bytes)
