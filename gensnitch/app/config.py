"""
Runtime configuration for GenSnitch.

This module centralizes environment-driven configuration: resource
limits, acquisition timeouts, the issuer trust list location and the
host's origin grants.

Configuration is read-only at runtime and must not influence verdicts in
non-deterministic ways.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Tuple

from pydantic import BaseModel, Field, field_validator

DEFAULT_TRUST_LIST_PATH = (
    Path(__file__).parent / "provenance" / "assets" / "allowed.sha256.txt"
)


class GenSnitchConfig(BaseModel):
    """
    Runtime configuration for the analysis pipeline.

    Configuration is environment-driven, read-only at runtime, and must
    not introduce non-deterministic behavior into verdicts.
    """

    # ------------------------------------------------------------------
    # Safety and resource limits
    # ------------------------------------------------------------------

    MAX_IMAGE_SIZE_MB: int = Field(
        25,
        description=(
            "Maximum image size in megabytes, enforced from a declared "
            "content length and again once the bytes are in hand"
        ),
    )

    FETCH_TIMEOUT_SECONDS: float = Field(
        30.0,
        description="Bound on each retrieval strategy and delegated call",
    )

    MAX_CHUNK_DISPLAY_CHARS: int = Field(
        500,
        description="Display cap for extracted PNG text-chunk values",
    )

    # ------------------------------------------------------------------
    # Signal producers
    # ------------------------------------------------------------------

    ENABLE_C2PA_VERIFICATION: bool = Field(
        True,
        description="Run content-provenance manifest verification",
    )

    ENABLE_RASTER_FALLBACK: bool = Field(
        True,
        description=(
            "Allow the rasterize-and-re-encode fallback. The result "
            "carries no embedded metadata."
        ),
    )

    TRUST_LIST_PATH: Path = Field(
        DEFAULT_TRUST_LIST_PATH,
        description=(
            "Plain-text list of lowercase hex SHA-256 issuer certificate "
            "fingerprints, one per line"
        ),
    )

    # ------------------------------------------------------------------
    # Host origin grants
    # ------------------------------------------------------------------

    GRANTED_ORIGINS: Tuple[str, ...] = Field(
        (),
        description="Origin patterns already granted, e.g. 'https://cdn.example/*'",
    )

    GRANTABLE_ORIGINS: Tuple[str, ...] = Field(
        (),
        description="Origin patterns a grant request would be approved for",
    )

    REPORT_VERSION: str = Field(
        "0.1.0",
        description="Schema version stamped into every report",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("MAX_IMAGE_SIZE_MB", "MAX_CHUNK_DISPLAY_CHARS")
    @classmethod
    def positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Limits must be positive integers")
        return v

    @field_validator("FETCH_TIMEOUT_SECONDS")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("FETCH_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("TRUST_LIST_PATH")
    @classmethod
    def trust_list_must_be_file(cls, v: Path) -> Path:
        # The packaged default may legitimately be absent in stripped
        # installs; the loader then degrades to an empty trust list.
        if v == DEFAULT_TRUST_LIST_PATH:
            return v
        if not v.exists():
            raise ValueError(f"Configured TRUST_LIST_PATH does not exist: {v}")
        if not v.is_file():
            raise ValueError(f"Configured TRUST_LIST_PATH is not a file: {v}")
        return v

    @property
    def max_image_bytes(self) -> int:
        return self.MAX_IMAGE_SIZE_MB * 1024 * 1024

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "GenSnitchConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        def env_list(name: str) -> Tuple[str, ...]:
            raw = os.getenv(name, "")
            return tuple(p.strip() for p in raw.split(",") if p.strip())

        trust_list_env = os.getenv("GENSNITCH_TRUST_LIST_PATH")

        return cls(
            MAX_IMAGE_SIZE_MB=int(
                os.getenv("GENSNITCH_MAX_IMAGE_SIZE_MB", "25")
            ),
            FETCH_TIMEOUT_SECONDS=float(
                os.getenv("GENSNITCH_FETCH_TIMEOUT_SECONDS", "30")
            ),
            MAX_CHUNK_DISPLAY_CHARS=int(
                os.getenv("GENSNITCH_MAX_CHUNK_DISPLAY_CHARS", "500")
            ),
            ENABLE_C2PA_VERIFICATION=env_bool(
                "GENSNITCH_ENABLE_C2PA_VERIFICATION", True
            ),
            ENABLE_RASTER_FALLBACK=env_bool(
                "GENSNITCH_ENABLE_RASTER_FALLBACK", True
            ),
            TRUST_LIST_PATH=(
                Path(trust_list_env)
                if trust_list_env
                else DEFAULT_TRUST_LIST_PATH
            ),
            GRANTED_ORIGINS=env_list("GENSNITCH_GRANTED_ORIGINS"),
            GRANTABLE_ORIGINS=env_list("GENSNITCH_GRANTABLE_ORIGINS"),
            REPORT_VERSION=os.getenv("GENSNITCH_REPORT_VERSION", "0.1.0"),
        )

    model_config = {
        "frozen": True,
    }
