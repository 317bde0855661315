"""
Host access grants.

Origins are expressed as match patterns ``scheme://host/*``. The broad
grant is ``*://*/*``; ``<all_urls>`` is accepted as a synonym.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Iterable, List, Protocol, Sequence

from gensnitch.app.acquisition.locators import ALL_URLS_PATTERN, BROAD_ORIGIN_PATTERN

logger = logging.getLogger(__name__)


class HostPermissions(Protocol):
    async def contains(self, origins: Sequence[str]) -> bool:
        ...

    async def request(self, origins: Sequence[str]) -> bool:
        ...


def pattern_covers(pattern: str, origin: str) -> bool:
    pattern = pattern.strip().lower()
    if pattern in (ALL_URLS_PATTERN, BROAD_ORIGIN_PATTERN):
        return True
    return fnmatchcase(origin.lower(), pattern)


def _all_covered(patterns: Iterable[str], origins: Sequence[str]) -> bool:
    patterns = list(patterns)
    return all(any(pattern_covers(p, origin) for p in patterns) for origin in origins)


class StaticHostPermissions:
    """
    Grants answered from configuration.

    ``granted`` are held from the start; a request for origins covered by
    ``grantable`` is approved and remembered for the process lifetime.
    """

    def __init__(
        self,
        granted: Iterable[str] = (),
        grantable: Iterable[str] = (),
    ) -> None:
        self._granted: List[str] = list(granted)
        self._grantable: List[str] = list(grantable)

    async def contains(self, origins: Sequence[str]) -> bool:
        return _all_covered(self._granted, origins)

    async def request(self, origins: Sequence[str]) -> bool:
        if _all_covered(self._granted, origins):
            return True

        if not _all_covered(self._grantable, origins):
            logger.info("Host permission request denied for %s", ", ".join(origins))
            return False

        self._granted.extend(o for o in origins if o not in self._granted)
        logger.info("Host permission granted for %s", ", ".join(origins))
        return True
