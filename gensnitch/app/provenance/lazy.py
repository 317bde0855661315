"""
One-time asynchronous initialization.

``LazyResource`` guards a process-wide value that is expensive to create
(the manifest verification capability, the issuer trust list).

Contract:
- the first caller of ``get()`` creates a shared pending future and runs
  the factory;
- concurrent callers await that same future and never re-trigger the
  factory;
- the outcome is cached for the lifetime of the resource, including a
  failure, which is re-raised to every later caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyResource(Generic[T]):
    def __init__(self, name: str, factory: Callable[[], Awaitable[T]]) -> None:
        self.name = name
        self._factory = factory
        self._future: Optional[asyncio.Future[T]] = None

    @property
    def settled(self) -> bool:
        """Whether initialization has completed (successfully or not)."""
        return self._future is not None and self._future.done()

    async def get(self) -> T:
        if self._future is None:
            # No await between the check and the assignment: the first
            # caller owns initialization.
            self._future = asyncio.get_running_loop().create_future()
            await self._initialize(self._future)

        return await asyncio.shield(self._future)

    async def _initialize(self, future: asyncio.Future[T]) -> None:
        logger.info("Initializing %s", self.name)
        try:
            value = await self._factory()
        except asyncio.CancelledError:
            # Let a later caller retry instead of waiting forever.
            future.cancel()
            self._future = None
            raise
        except Exception as exc:
            logger.warning("Initialization of %s failed: %s", self.name, exc)
            future.set_exception(exc)
        else:
            future.set_result(value)
