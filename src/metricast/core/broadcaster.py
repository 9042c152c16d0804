"""Periodic sample-and-broadcast loop."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass

from metricast.config import BROADCAST_INTERVAL_SECONDS
from metricast.core.registry import ConnectionRegistry
from metricast.core.snapshot import SnapshotBuilder
from metricast.core.subscriber import Subscriber
from metricast.errors import DeliveryFailed, MetricsUnavailable
from metricast.models.enums import BroadcastState
from metricast.models.runtime import Snapshot

logger = logging.getLogger("metricast.broadcaster")


@dataclass(frozen=True, slots=True)
class CycleResult:
    """Outcome of one broadcast tick."""

    sampled: bool
    delivered: int = 0
    dropped: int = 0


def encode_snapshot(snapshot: Snapshot) -> str:
    """Serialize a snapshot to its JSON wire form."""
    return json.dumps(snapshot.to_payload(), separators=(",", ":"))


class BroadcastScheduler:
    """Samples once per interval and fans the snapshot out to every subscriber.

    Cycles never overlap: sleep, sample, broadcast, repeat. A failed sample
    skips the tick; a failed delivery drops only that subscriber.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        builder: SnapshotBuilder,
        *,
        interval: float = BROADCAST_INTERVAL_SECONDS,
        send_timeout: float = 2.0,
        skip_when_idle: bool = True,
    ) -> None:
        self._registry = registry
        self._builder = builder
        self._interval = interval
        self._send_timeout = send_timeout
        self._skip_when_idle = skip_when_idle
        self._task: asyncio.Task | None = None
        self.state = BroadcastState.IDLE

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the loop on the running event loop. No-op if already running."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="metricast-broadcast")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.state = BroadcastState.IDLE

    async def run_forever(self) -> None:
        logger.info("Broadcast loop started (interval %.1fs)", self._interval)
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Broadcast cycle failed")
                self.state = BroadcastState.IDLE

    async def run_cycle(self) -> CycleResult:
        """Run one tick without sleeping."""
        if self._skip_when_idle and len(self._registry) == 0:
            return CycleResult(sampled=False)

        self.state = BroadcastState.SAMPLING
        try:
            snapshot = await asyncio.to_thread(self._builder.build)
        except MetricsUnavailable as exc:
            logger.warning("Failed to get metrics: %s", exc)
            self.state = BroadcastState.IDLE
            return CycleResult(sampled=False)

        self.state = BroadcastState.BROADCASTING
        result = await self.broadcast(snapshot)
        self.state = BroadcastState.IDLE
        return result

    async def broadcast(self, snapshot: Snapshot) -> CycleResult:
        """Deliver one snapshot to every registered subscriber."""
        text = encode_snapshot(snapshot)
        dropped = 0

        async def _deliver(subscriber: Subscriber) -> None:
            nonlocal dropped
            try:
                await subscriber.send(text, timeout=self._send_timeout)
            except DeliveryFailed as exc:
                logger.info("Failed to write to websocket: %s", exc)
                dropped += 1
                await self._registry.remove(subscriber)
                await subscriber.close()

        attempted = await self._registry.for_each(_deliver)
        return CycleResult(sampled=True, delivered=attempted - dropped, dropped=dropped)
