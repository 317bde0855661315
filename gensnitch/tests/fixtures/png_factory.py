import io
import struct
import zlib
from typing import Optional

from PIL import Image


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


# ------------------------------------------------------------------
# Raw chunk builders
# ------------------------------------------------------------------

def chunk(chunk_type: bytes, payload: bytes) -> bytes:
    """Serialize one chunk: length | type | payload | CRC."""
    crc = zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + chunk_type + payload + struct.pack(">I", crc)


def _ihdr(width: int = 1, height: int = 1) -> bytes:
    # 8-bit truecolor, no interlace
    return chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))


def _idat(width: int = 1, height: int = 1) -> bytes:
    row = b"\x00" + b"\x00\x00\x00" * width
    return chunk(b"IDAT", zlib.compress(row * height))


IEND = chunk(b"IEND", b"")


def text_chunk(key: str, value: str) -> bytes:
    return chunk(b"tEXt", key.encode("latin-1") + b"\x00" + value.encode("latin-1"))


def ztxt_chunk(
    key: str,
    value: str,
    *,
    method: int = 0,
    corrupt: bool = False,
    truncated: bool = False,
) -> bytes:
    compressed = zlib.compress(value.encode("latin-1"))
    if truncated:
        # Well-formed prefix of the stream, final block missing
        compressed = compressed[: len(compressed) // 2]
    if corrupt:
        # Valid zlib header, garbage deflate stream
        compressed = compressed[:2] + b"\xff\xff\xff\xff"
    return chunk(
        b"zTXt",
        key.encode("latin-1") + b"\x00" + bytes([method]) + compressed,
    )


def itxt_chunk(
    key: str,
    value: str,
    *,
    compressed: bool = False,
    language: str = "",
    translated_key: str = "",
) -> bytes:
    text = value.encode("utf-8")
    if compressed:
        text = zlib.compress(text)
    return chunk(
        b"iTXt",
        key.encode("latin-1")
        + b"\x00"
        + bytes([1 if compressed else 0, 0])
        + language.encode("ascii")
        + b"\x00"
        + translated_key.encode("utf-8")
        + b"\x00"
        + text,
    )


# ------------------------------------------------------------------
# Whole files
# ------------------------------------------------------------------

def minimal_png() -> bytes:
    """
    Smallest structurally valid PNG: IHDR, IDAT, IEND.

    Carries no text chunks and no metadata of any kind.
    """
    return PNG_SIGNATURE + _ihdr() + _idat() + IEND


def png_with_chunks(*chunks: bytes) -> bytes:
    """Minimal PNG with the given chunks inserted before IDAT."""
    return PNG_SIGNATURE + _ihdr() + b"".join(chunks) + _idat() + IEND


def sd_parameters_png(value: str = "Steps: 20, Sampler: Euler") -> bytes:
    """PNG as written by Stable Diffusion web UIs."""
    return png_with_chunks(text_chunk("parameters", value))


def truncated_png(*chunks: bytes) -> bytes:
    """
    PNG whose last chunk declares more bytes than the buffer holds.

    The given chunks precede the corrupt one and must still be parsed.
    """
    corrupt = struct.pack(">I", 10_000) + b"tEXt" + b"broken\x00data"
    return PNG_SIGNATURE + _ihdr() + b"".join(chunks) + corrupt


XMP_TEMPLATE = (
    '<x:xmpmeta xmlns:x="adobe:ns:meta/">'
    '<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
    '<rdf:Description xmlns:xmp="http://ns.adobe.com/xap/1.0/" '
    'xmlns:Iptc4xmpExt="http://iptc.org/std/Iptc4xmpExt/2008-02-29/" '
    "{attributes}/>"
    "</rdf:RDF>"
    "</x:xmpmeta>"
)


def png_with_xmp(
    *,
    creator_tool: Optional[str] = None,
    digital_source_type: Optional[str] = None,
) -> bytes:
    attributes = []
    if creator_tool:
        attributes.append(f'xmp:CreatorTool="{creator_tool}"')
    if digital_source_type:
        attributes.append(f'Iptc4xmpExt:DigitalSourceType="{digital_source_type}"')
    packet = XMP_TEMPLATE.format(attributes=" ".join(attributes))
    return png_with_chunks(itxt_chunk("XML:com.adobe.xmp", packet))


def jpeg_with_exif(
    *,
    software: Optional[str] = None,
    artist: Optional[str] = None,
    make: Optional[str] = None,
    description: Optional[str] = None,
) -> bytes:
    """Small JPEG carrying the given baseline EXIF tags."""
    exif = Image.Exif()
    if description is not None:
        exif[0x010E] = description
    if make is not None:
        exif[0x010F] = make
    if software is not None:
        exif[0x0131] = software
    if artist is not None:
        exif[0x013B] = artist

    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(128, 64, 32)).save(
        buffer, format="JPEG", exif=exif
    )
    return buffer.getvalue()
