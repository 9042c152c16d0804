"""Registry of live subscribers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from metricast.core.subscriber import Subscriber

logger = logging.getLogger("metricast.registry")


class ConnectionRegistry:
    """Lock-guarded set of subscribers whose channels are believed open.

    Size is unbounded. All mutation goes through ``add``/``remove`` so that
    iteration in ``for_each`` never observes a half-applied change.
    """

    def __init__(self) -> None:
        self._members: set[Subscriber] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._members

    async def add(self, subscriber: Subscriber) -> None:
        async with self._lock:
            self._members.add(subscriber)
            count = len(self._members)
        logger.info("Subscriber %r connected (%d active)", subscriber, count)

    async def remove(self, subscriber: Subscriber) -> bool:
        """Unregister a subscriber. Returns False if it was not registered."""
        async with self._lock:
            if subscriber not in self._members:
                return False
            self._members.discard(subscriber)
            count = len(self._members)
        logger.info("Subscriber %r removed (%d active)", subscriber, count)
        return True

    async def members(self) -> frozenset[Subscriber]:
        """Consistent copy of the current membership."""
        async with self._lock:
            return frozenset(self._members)

    async def for_each(self, fn: Callable[[Subscriber], Awaitable[None]]) -> int:
        """Run ``fn`` concurrently for every member present when iteration starts.

        Members removed before their turn are skipped. An exception from one
        call is logged and does not affect the others. Returns the number of
        subscribers ``fn`` was called for.
        """
        current = await self.members()

        async def _visit(subscriber: Subscriber) -> bool:
            if subscriber not in self._members:
                return False
            await fn(subscriber)
            return True

        results = await asyncio.gather(*(_visit(s) for s in current), return_exceptions=True)
        visited = 0
        for subscriber, result in zip(current, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Unhandled error visiting %r", subscriber,
                    exc_info=(type(result), result, result.__traceback__),
                )
                visited += 1
            elif result:
                visited += 1
        return visited
