"""
EXIF / XMP metadata adapter.

``parse_metadata`` is a thin, pure wrapper over Pillow's EXIF decoder and
an XMP packet scan. ``analyze_metadata`` turns the decoded fields into the
metadata signal consumed by verdict fusion.

Tool names found in ``software`` / ``creatorTool`` are not reported as
indicators here; fusion evaluates them under a separate rule.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Dict, List, Optional

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

from gensnitch.app.heuristics import all_matches, first_match, get_heuristic_tables
from gensnitch.app.schemas.signals import MetadataResult

logger = logging.getLogger(__name__)

# Baseline TIFF/EXIF tag ids
EXIF_IMAGE_DESCRIPTION = 0x010E
EXIF_MAKE = 0x010F
EXIF_MODEL = 0x0110
EXIF_SOFTWARE = 0x0131
EXIF_ARTIST = 0x013B

_XMP_PACKET = re.compile(rb"<x:xmpmeta[\s\S]*?</x:xmpmeta>")


def _xmp_property(packet: str, name: str) -> Optional[str]:
    """
    Read a simple XMP property in either attribute or element form.

    ``name`` is matched on its local part so any namespace prefix works.
    """
    attribute = re.search(rf'(?:\w+:)?{name}="([^"]*)"', packet)
    if attribute:
        return attribute.group(1).strip() or None

    element = re.search(
        rf"<(?:\w+:)?{name}[^>]*>([\s\S]*?)</(?:\w+:)?{name}>", packet
    )
    if element is None:
        return None

    # rdf:Alt / rdf:Seq containers wrap the value in rdf:li
    text = re.sub(r"<[^>]+>", " ", element.group(1))
    text = " ".join(text.split())
    return text or None


class MetadataFields(BaseModel):
    """Decoded EXIF/XMP fields of interest."""

    software: Optional[str] = None
    artist: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    creator_tool: Optional[str] = None
    digital_source_type: Optional[str] = None
    xmp_present: bool = False

    @property
    def any_present(self) -> bool:
        return self.xmp_present or any(
            v is not None
            for v in (
                self.software,
                self.artist,
                self.make,
                self.model,
                self.description,
                self.creator_tool,
                self.digital_source_type,
            )
        )

    model_config = ConfigDict(frozen=True)


def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).strip().strip("\x00").strip()
    return text or None


def _read_exif(data: bytes) -> Dict[int, object]:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return dict(image.getexif())
    except UnidentifiedImageError:
        return {}
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        # Pillow raises these for truncated or inconsistent containers.
        logger.debug("EXIF decode failed: %s", exc)
        return {}


def parse_metadata(data: bytes) -> MetadataFields:
    """Decode EXIF and XMP fields from raw image bytes."""
    exif = _read_exif(data)

    packet_match = _XMP_PACKET.search(data)
    packet = (
        packet_match.group(0).decode("utf-8", errors="replace")
        if packet_match
        else ""
    )

    return MetadataFields(
        software=_clean(exif.get(EXIF_SOFTWARE)),
        artist=_clean(exif.get(EXIF_ARTIST)),
        make=_clean(exif.get(EXIF_MAKE)),
        model=_clean(exif.get(EXIF_MODEL)),
        description=(
            _clean(exif.get(EXIF_IMAGE_DESCRIPTION))
            or (_xmp_property(packet, "description") if packet else None)
        ),
        creator_tool=_xmp_property(packet, "CreatorTool") if packet else None,
        digital_source_type=(
            _xmp_property(packet, "DigitalSourceType") if packet else None
        ),
        xmp_present=bool(packet),
    )


def analyze_metadata(data: bytes) -> MetadataResult:
    """Build the metadata signal for an image buffer."""
    fields = parse_metadata(data)

    if not fields.any_present:
        return MetadataResult(found=False)

    tables = get_heuristic_tables()
    indicators: List[str] = []

    source_type = first_match(
        fields.digital_source_type, tables.ai_digital_source_types
    )
    if source_type:
        indicators.append(f"DigitalSourceType: {fields.digital_source_type}")

    for label, value in (
        ("Description", fields.description),
        ("Artist", fields.artist),
        ("Software", fields.software),
    ):
        for token in all_matches(value, tables.metadata_value_markers):
            indicator = f"{label}: {token}"
            if indicator not in indicators:
                indicators.append(indicator)

    raw_fields = {
        k: v
        for k, v in fields.model_dump().items()
        if v is not None and k != "xmp_present"
    }

    return MetadataResult(
        found=True,
        software=fields.software,
        artist=fields.artist,
        make=fields.make,
        model=fields.model,
        creator_tool=fields.creator_tool,
        ai_indicators=indicators,
        raw_fields=raw_fields or None,
    )
