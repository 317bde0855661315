"""
Central analysis coordinator.

IMPORTANT:
The coordinator is a DUMB AUTHORITY.

It MUST NOT:
- inspect image bytes itself
- interpret signals
- apply heuristics

Its sole responsibilities are:
- enforcing execution order (acquisition, signal producers, fusion)
- running the three independent signal producers concurrently
- converting every failure into an ERROR-verdict report
- constructing the final Report

The coordinator never raises to its caller.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import anyio

from gensnitch.app.acquisition.errors import AcquisitionError, SizeExceededError
from gensnitch.app.acquisition.locators import sniff_media_type
from gensnitch.app.acquisition.selector import ImageAcquirer
from gensnitch.app.analyzers.metadata import analyze_metadata
from gensnitch.app.analyzers.png_text import analyze_png_text
from gensnitch.app.config import GenSnitchConfig
from gensnitch.app.fusion.verdict import fuse
from gensnitch.app.schemas.acquisition import ImageBuffer
from gensnitch.app.schemas.report import Confidence, Report, Verdict
from gensnitch.app.schemas.signals import (
    AnalysisSignals,
    C2PAResult,
    MetadataResult,
    PngTextResult,
)

# Events (observational only)
from gensnitch.app.events import (
    AnalysisEvent,
    AnalysisEventEmitter,
    AnalysisEventType,
    NullEventEmitter,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def generate_report_id(timestamp_ms: Optional[int] = None) -> str:
    """``<base36 ms timestamp>-<6 random base36 chars>``"""
    timestamp_ms = now_ms() if timestamp_ms is None else timestamp_ms
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{to_base36(timestamp_ms)}-{suffix}"


def describe_exception(exc: BaseException) -> str:
    # Task groups wrap failures; report the first underlying cause.
    while getattr(exc, "exceptions", None):
        exc = exc.exceptions[0]
    return str(exc) or type(exc).__name__


class AnalysisCoordinator:
    """
    Central analysis coordinator.

    Execution order:
        1. Acquisition (fatal on failure)
        2. C2PA, metadata and PNG text producers (concurrent)
        3. Fusion
    """

    def __init__(
        self,
        config: GenSnitchConfig,
        acquirer: Optional[ImageAcquirer] = None,
        provenance: Optional[Any] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. ``provenance`` is any object
        with an async ``analyze(ImageBuffer) -> C2PAResult``.
        """
        self._config = config
        self._acquirer = acquirer or ImageAcquirer.from_config(config)

        if provenance is None:
            from gensnitch.app.provenance.verifier import get_provenance_runtime

            provenance = get_provenance_runtime(config)
        self._provenance = provenance

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: GenSnitchConfig) -> "AnalysisCoordinator":
        from gensnitch.app.provenance.verifier import get_provenance_runtime

        return cls(
            config=config,
            acquirer=ImageAcquirer.from_config(config),
            provenance=get_provenance_runtime(config),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze(
        self,
        locator: str,
        *,
        emitter: Optional[AnalysisEventEmitter] = None,
        report_id: Optional[str] = None,
    ) -> Report:
        """Acquire the image behind ``locator`` and analyze it."""
        emitter = emitter or NullEventEmitter()
        report_id = report_id or generate_report_id()

        await self._emit(
            emitter, report_id, AnalysisEventType.ANALYSIS_STARTED, url=locator[:200]
        )
        await self._emit(emitter, report_id, AnalysisEventType.ACQUISITION_STARTED)

        try:
            acquired = await self._acquirer.acquire(locator)
        except AcquisitionError as exc:
            logger.info("Acquisition failed (%s): %s", exc.kind.value, exc)
            await self._emit(
                emitter,
                report_id,
                AnalysisEventType.ACQUISITION_FAILED,
                kind=exc.kind.value,
                error=str(exc),
            )
            return await self._fail(emitter, report_id, locator, str(exc))
        except Exception as exc:
            logger.exception("Unexpected acquisition failure")
            return await self._fail(
                emitter, report_id, locator, describe_exception(exc)
            )

        await self._emit(
            emitter,
            report_id,
            AnalysisEventType.ACQUISITION_COMPLETED,
            method=acquired.method,
            byte_count=acquired.buffer.size,
            metadata_preserving=acquired.metadata_preserving,
        )

        return await self._analyze_buffer(
            acquired.buffer,
            url=locator,
            report_id=report_id,
            emitter=emitter,
            warnings=acquired.warnings,
        )

    async def analyze_bytes(
        self,
        data: bytes,
        url: str,
        *,
        emitter: Optional[AnalysisEventEmitter] = None,
        report_id: Optional[str] = None,
    ) -> Report:
        """Analyze bytes the caller already holds."""
        emitter = emitter or NullEventEmitter()
        report_id = report_id or generate_report_id()

        await self._emit(
            emitter, report_id, AnalysisEventType.ANALYSIS_STARTED, url=url[:200]
        )

        if len(data) > self._config.max_image_bytes:
            error = SizeExceededError(len(data), self._config.max_image_bytes)
            return await self._fail(emitter, report_id, url, str(error))

        buffer = ImageBuffer(data=data, media_type=sniff_media_type(data))
        return await self._analyze_buffer(
            buffer, url=url, report_id=report_id, emitter=emitter, warnings=[]
        )

    def create_error_report(
        self,
        url: str,
        message: str,
        *,
        report_id: Optional[str] = None,
    ) -> Report:
        return Report(
            id=report_id or generate_report_id(),
            url=url,
            timestamp=now_ms(),
            verdict=Verdict.ERROR,
            confidence=Confidence.LOW,
            signals=AnalysisSignals(
                c2pa=C2PAResult(available=False, present=False, errors=[message]),
                metadata=MetadataResult(found=False),
                png_text=PngTextResult(found=False),
            ),
            notes=[f"Analysis failed: {message}"],
            version=self._config.REPORT_VERSION,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _analyze_buffer(
        self,
        buffer: ImageBuffer,
        *,
        url: str,
        report_id: str,
        emitter: AnalysisEventEmitter,
        warnings: List[str],
    ) -> Report:
        try:
            signals = await self._produce_signals(buffer, report_id, emitter)

            if warnings:
                # Surface metadata loss next to the provenance signal.
                signals = signals.model_copy(
                    update={
                        "c2pa": signals.c2pa.model_copy(
                            update={"errors": [*signals.c2pa.errors, *warnings]}
                        )
                    }
                )

            outcome = fuse(signals)

            report = Report(
                id=report_id,
                url=url,
                timestamp=now_ms(),
                verdict=outcome.verdict,
                confidence=outcome.confidence,
                signals=signals,
                notes=outcome.notes,
                version=self._config.REPORT_VERSION,
            )
        except Exception as exc:
            logger.exception("Analysis failed for report %s", report_id)
            return await self._fail(emitter, report_id, url, describe_exception(exc))

        logger.info(
            "Report %s: %s (%s)",
            report_id,
            report.verdict.value,
            report.confidence.value,
        )

        await self._emit(
            emitter,
            report_id,
            AnalysisEventType.ANALYSIS_COMPLETED,
            verdict=report.verdict.value,
            confidence=report.confidence.value,
            report=report.model_dump(by_alias=True, mode="json"),
        )
        return report

    async def _produce_signals(
        self,
        buffer: ImageBuffer,
        report_id: str,
        emitter: AnalysisEventEmitter,
    ) -> AnalysisSignals:
        max_chars = self._config.MAX_CHUNK_DISPLAY_CHARS
        results: Dict[str, Any] = {}

        async def produce(name: str, call: Callable[[], Awaitable[Any]]) -> None:
            results[name] = await call()
            await self._emit(
                emitter, report_id, AnalysisEventType.SIGNAL_COMPLETED, producer=name
            )

        async with anyio.create_task_group() as tg:
            tg.start_soon(produce, "c2pa", lambda: self._provenance.analyze(buffer))
            tg.start_soon(
                produce,
                "metadata",
                lambda: anyio.to_thread.run_sync(analyze_metadata, buffer.data),
            )
            tg.start_soon(
                produce,
                "png_text",
                lambda: anyio.to_thread.run_sync(
                    lambda: analyze_png_text(buffer.data, max_display_chars=max_chars)
                ),
            )

        return AnalysisSignals(
            c2pa=results["c2pa"],
            metadata=results["metadata"],
            png_text=results["png_text"],
        )

    async def _fail(
        self,
        emitter: AnalysisEventEmitter,
        report_id: str,
        url: str,
        message: str,
    ) -> Report:
        report = self.create_error_report(url, message, report_id=report_id)
        await self._emit(
            emitter,
            report_id,
            AnalysisEventType.ANALYSIS_FAILED,
            error=message,
            report=report.model_dump(by_alias=True, mode="json"),
        )
        return report

    @staticmethod
    async def _emit(
        emitter: AnalysisEventEmitter,
        report_id: str,
        event_type: AnalysisEventType,
        **details: Any,
    ) -> None:
        await emitter.emit(
            AnalysisEvent(
                analysis_id=report_id,
                event_type=event_type,
                details=details or None,
            )
        )
