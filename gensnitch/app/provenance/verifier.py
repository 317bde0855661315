"""
Content-provenance manifest verification.

``ManifestVerifier`` is a thin adapter over the ``c2pa-python`` Reader:
it hands the image bytes and their media type to the library and returns
the parsed manifest store JSON. It performs no interpretation; that is
the classifier's job.

``ProvenanceRuntime`` is the process-wide guarded state shared by every
analysis: the issuer trust list and the verifier itself, each created at
most once through a ``LazyResource``.

Exception handling policy:
    Only ``c2pa.C2paError`` (and malformed store JSON) is caught around a
    read. Initialization failures of the capability are soft: the signal
    is reported ``available=False`` with the cause preserved.
"""

from __future__ import annotations

import io
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple, Type

import anyio

from gensnitch.app.config import GenSnitchConfig
from gensnitch.app.heuristics import HeuristicTables, get_heuristic_tables, matches_any
from gensnitch.app.provenance.classifier import (
    absent_result,
    classify_manifest_store,
    read_error_result,
    unavailable_result,
)
from gensnitch.app.provenance.lazy import LazyResource
from gensnitch.app.provenance.trust_list import load_trust_list
from gensnitch.app.schemas.acquisition import ImageBuffer
from gensnitch.app.schemas.signals import C2PAResult

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = "C2PA verification disabled by configuration"


class ManifestReadError(Exception):
    """The verification library failed to read a manifest store."""


class ManifestVerifier:
    """
    Reads manifest stores with the c2pa ``Reader``.

    The reader class and its error type are injected so the adapter can be
    exercised without the native library.
    """

    def __init__(
        self,
        reader_cls: Callable[..., Any],
        error_types: Tuple[Type[BaseException], ...],
    ) -> None:
        self._reader_cls = reader_cls
        self._error_types = error_types

    @classmethod
    def load(cls) -> "ManifestVerifier":
        """Import the native library. Raises if it is not usable."""
        from c2pa import C2paError, Reader

        return cls(reader_cls=Reader, error_types=(C2paError,))

    def _read_store_sync(self, media_type: str, data: bytes) -> Dict[str, Any]:
        try:
            with self._reader_cls(media_type, io.BytesIO(data)) as reader:
                store_json = reader.json()
        except self._error_types as exc:
            raise ManifestReadError(str(exc)) from exc

        try:
            store = json.loads(store_json)
        except (TypeError, ValueError) as exc:
            raise ManifestReadError(f"malformed manifest store: {exc}") from exc

        if not isinstance(store, dict):
            raise ManifestReadError("malformed manifest store: not an object")
        return store

    async def read_store(self, media_type: str, data: bytes) -> Dict[str, Any]:
        """Read the manifest store in a worker thread."""
        return await anyio.to_thread.run_sync(
            self._read_store_sync, media_type, data
        )


class ProvenanceRuntime:
    """
    Guarded shared state for manifest verification.

    Both resources are initialized lazily on first use and exactly once,
    even under concurrent analyses. A failed verifier initialization is
    cached: every later analysis reports ``available=False`` with the same
    cause, without retrying.
    """

    def __init__(
        self,
        *,
        trust_list_path: Optional[Path] = None,
        enabled: bool = True,
        verifier_factory: Optional[Callable[[], ManifestVerifier]] = None,
        tables: Optional[HeuristicTables] = None,
    ) -> None:
        self._trust_list_path = trust_list_path
        self._enabled = enabled
        self._verifier_factory = verifier_factory or ManifestVerifier.load
        self._tables = tables

        self._trust_list: LazyResource[FrozenSet[str]] = LazyResource(
            "issuer trust list", self._load_trust_list
        )
        self._verifier: LazyResource[ManifestVerifier] = LazyResource(
            "manifest verifier", self._create_verifier
        )

    @classmethod
    def from_config(cls, config: GenSnitchConfig) -> "ProvenanceRuntime":
        return cls(
            trust_list_path=config.TRUST_LIST_PATH,
            enabled=config.ENABLE_C2PA_VERIFICATION,
        )

    # ------------------------------------------------------------------
    # Resource factories
    # ------------------------------------------------------------------

    async def _load_trust_list(self) -> FrozenSet[str]:
        if self._trust_list_path is None:
            return frozenset()
        return await anyio.to_thread.run_sync(
            load_trust_list, self._trust_list_path
        )

    async def _create_verifier(self) -> ManifestVerifier:
        return self._verifier_factory()

    async def trust_list(self) -> FrozenSet[str]:
        return await self._trust_list.get()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _is_no_manifest(self, message: str) -> bool:
        tables = self._tables or get_heuristic_tables()
        return matches_any(message, tables.no_manifest_error_markers)

    async def analyze(self, buffer: ImageBuffer) -> C2PAResult:
        """
        Verify and classify the manifest embedded in ``buffer``.

        Never raises for verifier-side failures; they are folded into the
        result.
        """
        if not self._enabled:
            return unavailable_result(DISABLED_MESSAGE)

        try:
            verifier = await self._verifier.get()
        except Exception as exc:
            # Import errors, missing native libraries, and the like.
            return unavailable_result(f"C2PA initialization failed: {exc}")

        if buffer.media_type is None:
            logger.debug("Unknown media type; no manifest can be located")
            return absent_result()

        trust_list = await self._trust_list.get()

        try:
            store = await verifier.read_store(buffer.media_type, buffer.data)
        except ManifestReadError as exc:
            message = str(exc)
            if self._is_no_manifest(message):
                return absent_result()
            logger.warning("Manifest read failed: %s", message)
            return read_error_result(message)

        if not store.get("manifests"):
            return absent_result()

        return classify_manifest_store(store, trust_list)


@lru_cache(maxsize=4)
def _shared_runtime(config: GenSnitchConfig) -> ProvenanceRuntime:
    return ProvenanceRuntime.from_config(config)


def get_provenance_runtime(
    config: Optional[GenSnitchConfig] = None,
) -> ProvenanceRuntime:
    """
    Process-wide runtime for ``config`` (the environment configuration by
    default).

    Equal configurations share one runtime, so the trust list and the
    verifier are initialized once per process however many coordinators
    are built.
    """
    return _shared_runtime(config or GenSnitchConfig.from_env())


async def analyze_c2pa(
    buffer: ImageBuffer,
    runtime: Optional[ProvenanceRuntime] = None,
) -> C2PAResult:
    """Manifest signal for ``buffer``. Never raises for verifier-side failures."""
    return await (runtime or get_provenance_runtime()).analyze(buffer)
