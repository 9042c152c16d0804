"""Per-subscriber liveness watcher."""

from __future__ import annotations

import logging

from metricast.core.registry import ConnectionRegistry
from metricast.core.subscriber import Subscriber
from metricast.errors import SubscriberClosed

logger = logging.getLogger("metricast.lifecycle")


class SubscriberWatcher:
    """Reads from each subscriber until its first read error, then reclaims it.

    Subscribers are not expected to send anything; inbound frames are dropped.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def watch(self, subscriber: Subscriber) -> SubscriberClosed | None:
        """Block until the subscriber goes away. Returns the closure that ended it.

        Always removes and closes the subscriber exactly once from this side,
        including when the watching task is cancelled.
        """
        closure: SubscriberClosed | None = None
        try:
            while True:
                await subscriber.receive()
        except SubscriberClosed as exc:
            closure = exc
            logger.debug("%s", exc)
        finally:
            await self._registry.remove(subscriber)
            await subscriber.close()
        return closure
