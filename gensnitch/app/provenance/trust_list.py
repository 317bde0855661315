"""
Issuer trust list.

Plain text, one lowercase hex SHA-256 certificate fingerprint per line.
Lines beginning with ``#`` are comments; malformed lines are skipped
silently.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import FrozenSet

logger = logging.getLogger(__name__)

_FINGERPRINT = re.compile(r"^[a-f0-9]{64}$")


def parse_trust_list(text: str) -> FrozenSet[str]:
    fingerprints = set()
    for line in text.splitlines():
        candidate = line.strip().lower()
        if not candidate or candidate.startswith("#"):
            continue
        if _FINGERPRINT.match(candidate):
            fingerprints.add(candidate)
    return frozenset(fingerprints)


def load_trust_list(path: Path) -> FrozenSet[str]:
    """
    Load the trust list from disk.

    A missing or unreadable file degrades to an empty trust list; no
    issuer is then considered trusted on the strength of this list.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to load trust list %s: %s", path, exc)
        return frozenset()

    fingerprints = parse_trust_list(text)
    logger.info("Loaded %d trusted certificate fingerprints", len(fingerprints))
    return fingerprints


def normalize_fingerprint(value: str) -> str:
    """Lowercase and strip ':' separators from an openssl-style fingerprint."""
    return value.replace(":", "").strip().lower()
