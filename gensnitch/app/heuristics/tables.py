"""
Heuristic string-matching tables.

The fragment lists that drive detection recall (generative tool names,
PNG key/value markers, provenance assertion markers) live in
``tables.json`` next to this module so they can be reviewed and revised
independently of the classification logic. The JSON document carries its
own ``version``.

All matching is case-insensitive substring matching.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

TABLES_PATH = Path(__file__).parent / "tables.json"


class HeuristicTables(BaseModel):
    """
    Versioned, immutable set of detection fragment lists.
    """

    version: str = Field(..., description="Revision of the table document")

    generative_tools: List[str] = Field(
        ...,
        min_length=1,
        description="Name fragments of text, image and video generation tools",
    )

    png_key_markers: List[str] = Field(
        ...,
        description="Text-chunk keys known to carry generation metadata",
    )

    png_value_markers: List[str] = Field(
        ...,
        description="Generation-parameter tokens found inside chunk values",
    )

    notable_png_keys: List[str] = Field(
        default_factory=list,
        description="Keys counted as 'relevant' when summarizing chunks",
    )

    ai_assertion_label_markers: List[str] = Field(
        ...,
        description="Provenance assertion label fragments denoting AI involvement",
    )

    ai_digital_source_types: List[str] = Field(
        ...,
        description="Digital source type fragments naming algorithmic media",
    )

    ai_software_agent_fragments: List[str] = Field(
        ...,
        description="Software agent name fragments of generative tools",
    )

    creation_action_markers: List[str] = Field(
        ...,
        description="Action label fragments that denote creation or generation",
    )

    metadata_value_markers: List[str] = Field(
        ...,
        description="EXIF/XMP value fragments that indicate AI generation",
    )

    no_manifest_error_markers: List[str] = Field(
        ...,
        description=(
            "Verifier error message fragments that mean 'no manifest "
            "embedded' rather than a verification failure"
        ),
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


def load_heuristic_tables(path: Path = TABLES_PATH) -> HeuristicTables:
    """Parse and validate a heuristic table document."""
    return HeuristicTables.model_validate(
        json.loads(path.read_text(encoding="utf-8"))
    )


@lru_cache(maxsize=1)
def get_heuristic_tables() -> HeuristicTables:
    """Process-wide tables, loaded on first use."""
    return load_heuristic_tables()


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

def first_match(value: Optional[str], fragments: Iterable[str]) -> Optional[str]:
    """Return the first fragment contained in ``value`` (case-insensitive)."""
    if not value:
        return None

    lowered = value.lower()
    for fragment in fragments:
        if fragment.lower() in lowered:
            return fragment
    return None


def matches_any(value: Optional[str], fragments: Iterable[str]) -> bool:
    return first_match(value, fragments) is not None


def all_matches(value: Optional[str], fragments: Iterable[str]) -> List[str]:
    """Every fragment contained in ``value``, in table order."""
    if not value:
        return []

    lowered = value.lower()
    return [f for f in fragments if f.lower() in lowered]
