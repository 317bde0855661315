"""
Tests for the PNG text-chunk parser.

Coverage matrix:

  Signature      Non-PNG bytes                       → found=False, idempotent
  tEXt           Stable Diffusion "parameters"       → key and value indicators
  Truncation     501-character value                 → 500 chars, truncated=True
  zTXt           method 0, valid stream              → inflated value
  zTXt           corrupt deflate stream              → placeholder, parse continues
  zTXt           stream cut before its final block   → placeholder
  zTXt           unknown method                      → chunk skipped
  iTXt           compressed and uncompressed         → decoded value
  Corruption     length runs past buffer end         → earlier chunks kept
  Dedupe         same token in several chunks        → reported once
"""

import zlib

from gensnitch.app.analyzers.png_text import (
    DECOMPRESSION_FAILED,
    analyze_png_text,
    inflate_zlib,
)
from gensnitch.tests.fixtures.png_factory import (
    itxt_chunk,
    minimal_png,
    png_with_chunks,
    sd_parameters_png,
    text_chunk,
    truncated_png,
    ztxt_chunk,
)


# ---------------------------------------------------------------------------
# Signature detection
# ---------------------------------------------------------------------------

def test_non_png_bytes_are_not_found():
    data = b"GIF89a" + text_chunk("parameters", "Steps: 20")

    first = analyze_png_text(data)
    second = analyze_png_text(data)

    assert first.found is False
    assert first.chunks == []
    assert first.ai_indicators == []
    assert first == second


def test_empty_buffer_is_not_found():
    assert analyze_png_text(b"").found is False


def test_png_without_text_chunks_is_not_found():
    result = analyze_png_text(minimal_png())

    assert result.found is False
    assert result.chunks == []


# ---------------------------------------------------------------------------
# tEXt
# ---------------------------------------------------------------------------

def test_sd_parameters_chunk_yields_key_and_value_indicators():
    result = analyze_png_text(sd_parameters_png("Steps: 20, Sampler: Euler"))

    assert result.found is True
    assert len(result.chunks) == 1
    assert result.chunks[0].key == "parameters"
    assert result.chunks[0].value == "Steps: 20, Sampler: Euler"
    assert result.chunks[0].truncated is False

    assert "PNG key: parameters" in result.ai_indicators
    assert "steps:" in result.ai_indicators
    assert "sampler:" in result.ai_indicators


def test_key_indicator_precedes_value_indicators():
    result = analyze_png_text(sd_parameters_png())

    assert result.ai_indicators[0] == "PNG key: parameters"


def test_unrelated_chunk_has_no_indicators():
    result = analyze_png_text(png_with_chunks(text_chunk("Title", "Holiday")))

    assert result.found is True
    assert result.ai_indicators == []


def test_chunk_without_key_is_skipped():
    result = analyze_png_text(
        png_with_chunks(text_chunk("", "orphan"), text_chunk("Title", "ok"))
    )

    assert [c.key for c in result.chunks] == ["Title"]


def test_indicators_are_deduplicated_case_insensitively():
    result = analyze_png_text(
        png_with_chunks(
            text_chunk("parameters", "Steps: 20"),
            text_chunk("Parameters", "steps: 30"),
        )
    )

    assert result.ai_indicators.count("steps:") == 1
    assert "PNG key: parameters" in result.ai_indicators
    assert "PNG key: Parameters" not in result.ai_indicators


# ---------------------------------------------------------------------------
# Display truncation
# ---------------------------------------------------------------------------

def test_501_character_value_is_truncated_to_500():
    value = "".join(chr(ord("a") + i % 26) for i in range(501))

    result = analyze_png_text(png_with_chunks(text_chunk("Comment", value)))

    chunk = result.chunks[0]
    assert chunk.truncated is True
    assert len(chunk.value) == 500
    assert chunk.value == value[:500]


def test_500_character_value_is_not_truncated():
    value = "x" * 500

    chunk = analyze_png_text(png_with_chunks(text_chunk("Comment", value))).chunks[0]

    assert chunk.truncated is False
    assert chunk.value == value


def test_display_limit_is_configurable():
    chunk = analyze_png_text(
        png_with_chunks(text_chunk("Comment", "abcdef")),
        max_display_chars=3,
    ).chunks[0]

    assert chunk.value == "abc"
    assert chunk.truncated is True


def test_indicators_scan_full_value_beyond_display_limit():
    value = "x" * 600 + " Steps: 20"

    result = analyze_png_text(png_with_chunks(text_chunk("Comment", value)))

    assert "steps:" in result.ai_indicators


# ---------------------------------------------------------------------------
# zTXt
# ---------------------------------------------------------------------------

def test_ztxt_is_inflated():
    result = analyze_png_text(
        png_with_chunks(ztxt_chunk("workflow", '{"nodes": []}'))
    )

    assert result.chunks[0].key == "workflow"
    assert result.chunks[0].value == '{"nodes": []}'
    assert "PNG key: workflow" in result.ai_indicators


def test_corrupt_ztxt_yields_placeholder_and_parse_continues():
    result = analyze_png_text(
        png_with_chunks(
            ztxt_chunk("prompt", "a cat", corrupt=True),
            text_chunk("parameters", "Steps: 20"),
        )
    )

    assert [c.key for c in result.chunks] == ["prompt", "parameters"]
    assert result.chunks[0].value == DECOMPRESSION_FAILED


def test_truncated_ztxt_stream_yields_placeholder_not_partial_text():
    value = "Steps: 20, Sampler: Euler a, CFG scale: 7, Seed: 1234, " * 20

    result = analyze_png_text(
        png_with_chunks(ztxt_chunk("parameters", value, truncated=True))
    )

    assert result.chunks[0].value == DECOMPRESSION_FAILED
    assert "steps:" not in result.ai_indicators
    assert "PNG key: parameters" in result.ai_indicators


def test_inflate_requires_complete_stream():
    stream = zlib.compress(b"Steps: 20, Sampler: Euler a" * 40)

    assert inflate_zlib(stream) == "Steps: 20, Sampler: Euler a" * 40
    assert inflate_zlib(stream[:-8]) is None


def test_ztxt_with_unknown_method_is_skipped():
    result = analyze_png_text(
        png_with_chunks(ztxt_chunk("prompt", "a cat", method=1))
    )

    assert result.found is False


def test_inflate_rejects_bad_zlib_header():
    assert inflate_zlib(b"\x78\x00abc") is None
    assert inflate_zlib(b"\x78") is None


# ---------------------------------------------------------------------------
# iTXt
# ---------------------------------------------------------------------------

def test_uncompressed_itxt():
    result = analyze_png_text(
        png_with_chunks(
            itxt_chunk("Description", "Made with ComfyUI", language="en")
        )
    )

    assert result.chunks[0].value == "Made with ComfyUI"
    assert "PNG key: Description" in result.ai_indicators
    assert "comfyui" in result.ai_indicators


def test_compressed_itxt():
    result = analyze_png_text(
        png_with_chunks(
            itxt_chunk("prompt", "portrait, Sampler: DPM++", compressed=True)
        )
    )

    assert result.chunks[0].value == "portrait, Sampler: DPM++"
    assert "sampler:" in result.ai_indicators


def test_itxt_utf8_value():
    result = analyze_png_text(
        png_with_chunks(itxt_chunk("Title", "café ☕"))
    )

    assert result.chunks[0].value == "café ☕"


# ---------------------------------------------------------------------------
# Corrupt containers
# ---------------------------------------------------------------------------

def test_overlong_length_keeps_chunks_parsed_before_corruption():
    result = analyze_png_text(
        truncated_png(text_chunk("parameters", "Steps: 20"))
    )

    assert result.found is True
    assert [c.key for c in result.chunks] == ["parameters"]


def test_parsing_stops_at_iend():
    data = png_with_chunks() + text_chunk("parameters", "Steps: 20")

    assert analyze_png_text(data).found is False


def test_arbitrary_bytes_after_signature_do_not_raise():
    data = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 4

    result = analyze_png_text(data)

    assert result == analyze_png_text(data)
