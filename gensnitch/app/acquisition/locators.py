"""
Source locator handling.

A locator is one of:

    data:   inline-encoded bytes, decoded locally
    blob:   ephemeral object owned by the hosting page
    file:   local file, readable only by a privileged context
    http(s) remote resource

Media types are always sniffed from the bytes with ``filetype``; a type
declared by the locator or by a server is never trusted.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import unquote_to_bytes, urlsplit
from urllib.request import url2pathname

import filetype

from gensnitch.app.acquisition.errors import (
    InvalidLocatorError,
    UnsupportedSchemeError,
)

BROAD_ORIGIN_PATTERN = "*://*/*"
ALL_URLS_PATTERN = "<all_urls>"


class LocatorKind(str, Enum):
    INLINE = "inline"
    EPHEMERAL = "ephemeral"
    LOCAL_FILE = "local_file"
    REMOTE = "remote"


_SCHEMES = {
    "data": LocatorKind.INLINE,
    "blob": LocatorKind.EPHEMERAL,
    "file": LocatorKind.LOCAL_FILE,
    "http": LocatorKind.REMOTE,
    "https": LocatorKind.REMOTE,
}


def classify_locator(locator: str) -> LocatorKind:
    if not locator:
        raise InvalidLocatorError("No image URL provided")

    scheme, sep, _ = locator.partition(":")
    kind = _SCHEMES.get(scheme.lower()) if sep else None
    if kind is None:
        raise UnsupportedSchemeError(
            f"Unsupported URL scheme: {locator[:30]}..."
        )
    return kind


def decode_data_url(locator: str) -> bytes:
    """
    Decode ``data:[<mediatype>][;base64],<data>``.

    The declared media type is ignored.
    """
    header, sep, payload = locator.partition(",")
    if not sep:
        raise InvalidLocatorError("Invalid data URL format")

    if header.lower().endswith(";base64"):
        try:
            # Whitespace is tolerated, other non-alphabet characters are not.
            return base64.b64decode("".join(payload.split()), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidLocatorError(f"Invalid base64 data URL: {exc}") from exc

    return unquote_to_bytes(payload)


def encode_data_url(data: bytes, media_type: str = "application/octet-stream") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def sniff_media_type(data: bytes) -> Optional[str]:
    return filetype.guess_mime(data)


def origin_pattern(url: str) -> str:
    """``https://cdn.example:8443/a.png`` -> ``https://cdn.example:8443/*``"""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise InvalidLocatorError(f"Cannot derive origin from {url[:80]}")
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}/*"


def file_locator_path(locator: str) -> Path:
    parts = urlsplit(locator)
    return Path(url2pathname(parts.path))
