"""
PNG text-chunk parser.

Walks the PNG chunk stream directly and extracts the textual key/value
pairs that image generators commonly embed (Stable Diffusion
``parameters``, ComfyUI ``workflow``/``prompt``, ...).

Chunk layout:
    4-byte big-endian length | 4-byte ASCII type | payload | 4-byte CRC

The CRC is not verified; it is only used for boundary arithmetic.

Supported text chunks:
    tEXt  key \\0 text
    zTXt  key \\0 method(1) zlib-data
    iTXt  key \\0 flag(1) method(1) lang \\0 translated-key \\0 text

Error handling policy:
    Bytes that are not a PNG are not an error: the result is simply
    ``found=False``. A PNG that is corrupt part-way through yields every
    chunk parsed before the corruption point. Decompression failures are
    confined to the affected chunk, whose value becomes a placeholder.
"""

from __future__ import annotations

import logging
import struct
import zlib
from typing import List, NamedTuple, Optional

from gensnitch.app.heuristics import get_heuristic_tables
from gensnitch.app.heuristics import all_matches, matches_any
from gensnitch.app.schemas.signals import PngTextResult, TextChunk

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
DEFAULT_MAX_DISPLAY_CHARS = 500
DECOMPRESSION_FAILED = "[compressed - decompression failed]"
KEY_INDICATOR_PREFIX = "PNG key: "

# length + type + CRC
_CHUNK_OVERHEAD = 12


class RawTextChunk(NamedTuple):
    chunk_type: str
    key: str
    value: str


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------

def is_png(data: bytes) -> bool:
    return data[:8] == PNG_SIGNATURE


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def inflate_zlib(data: bytes) -> Optional[str]:
    """
    Inflate a zlib stream, returning None on any failure.

    The 2-byte zlib header is checked and stripped and the remainder is
    inflated as raw deflate. The trailing Adler-32 is ignored.
    """
    if len(data) < 2:
        return None

    cmf, flg = data[0], data[1]
    if (cmf * 256 + flg) % 31 != 0:
        return None

    try:
        inflater = zlib.decompressobj(-zlib.MAX_WBITS)
        inflated = inflater.decompress(data[2:]) + inflater.flush()
    except zlib.error as exc:
        logger.debug("zlib inflate failed: %s", exc)
        return None

    if not inflater.eof:
        logger.debug("zlib stream ended before its final block")
        return None

    return _decode(inflated)


def _parse_text(payload: bytes) -> Optional[RawTextChunk]:
    null_index = payload.find(b"\x00")
    if null_index <= 0:
        return None
    return RawTextChunk(
        "tEXt",
        _decode(payload[:null_index]),
        _decode(payload[null_index + 1:]),
    )


def _parse_ztxt(payload: bytes) -> Optional[RawTextChunk]:
    null_index = payload.find(b"\x00")
    if null_index <= 0 or null_index + 2 >= len(payload):
        return None

    # Only method 0 (zlib/deflate) is defined.
    if payload[null_index + 1] != 0:
        return None

    key = _decode(payload[:null_index])
    value = inflate_zlib(payload[null_index + 2:])
    return RawTextChunk("zTXt", key, value if value is not None else DECOMPRESSION_FAILED)


def _parse_itxt(payload: bytes) -> Optional[RawTextChunk]:
    null_index = payload.find(b"\x00")
    if null_index <= 0 or null_index + 2 >= len(payload):
        return None

    key = _decode(payload[:null_index])
    compressed = payload[null_index + 1] == 1

    # Skip the language tag and the translated keyword.
    cursor = null_index + 3
    for _ in range(2):
        terminator = payload.find(b"\x00", cursor)
        if terminator == -1:
            return None
        cursor = terminator + 1

    if cursor >= len(payload):
        return None

    text = payload[cursor:]
    if compressed:
        value = inflate_zlib(text)
        return RawTextChunk("iTXt", key, value if value is not None else DECOMPRESSION_FAILED)

    return RawTextChunk("iTXt", key, _decode(text))


_TEXT_CHUNK_PARSERS = {
    "tEXt": _parse_text,
    "zTXt": _parse_ztxt,
    "iTXt": _parse_itxt,
}


def iter_text_chunks(data: bytes) -> List[RawTextChunk]:
    """
    Extract raw text chunks from a PNG byte string.

    Stops at IEND, or as soon as a declared length would run past the end
    of the buffer. Whatever was parsed up to that point is returned.
    """
    chunks: List[RawTextChunk] = []
    offset = len(PNG_SIGNATURE)

    while offset + _CHUNK_OVERHEAD <= len(data):
        (length,) = struct.unpack_from(">I", data, offset)
        chunk_type = data[offset + 4:offset + 8].decode("latin-1")

        if length > len(data) - offset - _CHUNK_OVERHEAD:
            logger.debug(
                "Chunk %r at offset %d declares %d bytes past end of buffer",
                chunk_type,
                offset,
                length,
            )
            break

        if chunk_type == "IEND":
            break

        parser = _TEXT_CHUNK_PARSERS.get(chunk_type)
        if parser is not None:
            payload = data[offset + 8:offset + 8 + length]
            chunk = parser(payload)
            if chunk is not None:
                chunks.append(chunk)

        offset += _CHUNK_OVERHEAD + length

    return chunks


# ---------------------------------------------------------------------------
# Public analyzer
# ---------------------------------------------------------------------------

def collect_indicators(chunks: List[RawTextChunk]) -> List[str]:
    """
    Run the key-name and value-content scans over all chunks.

    Key matches are reported as ``"PNG key: <key>"`` so they stay
    distinguishable from value tokens. Deduplication is case-insensitive
    and keeps the first-seen casing.
    """
    tables = get_heuristic_tables()
    indicators: List[str] = []
    seen = set()

    def add(indicator: str) -> None:
        lowered = indicator.lower()
        if lowered not in seen:
            seen.add(lowered)
            indicators.append(indicator)

    for chunk in chunks:
        if matches_any(chunk.key, tables.png_key_markers):
            add(f"{KEY_INDICATOR_PREFIX}{chunk.key}")

        for token in all_matches(chunk.value, tables.png_value_markers):
            add(token)

    return indicators


def analyze_png_text(
    data: bytes,
    *,
    max_display_chars: int = DEFAULT_MAX_DISPLAY_CHARS,
) -> PngTextResult:
    """
    Analyze a buffer for PNG text chunks carrying generation metadata.

    Never raises on arbitrary input. Repeated calls on the same buffer
    always agree.
    """
    if not is_png(data):
        return PngTextResult(found=False)

    raw_chunks = iter_text_chunks(data)
    if not raw_chunks:
        return PngTextResult(found=False)

    chunks = [
        TextChunk(
            key=chunk.key,
            value=chunk.value[:max_display_chars],
            truncated=len(chunk.value) > max_display_chars,
        )
        for chunk in raw_chunks
    ]

    return PngTextResult(
        found=True,
        chunks=chunks,
        ai_indicators=collect_indicators(raw_chunks),
    )
