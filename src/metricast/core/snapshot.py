"""Snapshot assembly: provider queries, CPU truncation, network deltas."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable
from decimal import ROUND_DOWN, Decimal

import psutil

from metricast.core.pm2 import Pm2Client
from metricast.core.provider import MetricsProvider
from metricast.errors import MetricsUnavailable, ProcessManagerUnavailable
from metricast.models.enums import MetricStage
from metricast.models.runtime import ManagedProcess, NetworkCounters, NetworkUsage, Snapshot

logger = logging.getLogger("metricast.snapshot")

CPU_PRECISION = 2

# Beyond this a float carries no digits after the decimal point worth truncating.
_NO_FRACTION_MAGNITUDE = 1e15

# Errors the provider may raise for a failed query.
_PROVIDER_ERRORS = (psutil.Error, OSError, RuntimeError)


def truncate_decimals(value: float, precision: int = CPU_PRECISION) -> float:
    """Truncate toward zero to ``precision`` decimal digits (33.456 -> 33.45).

    Works on the shortest decimal repr so already-truncated values stay put.
    Non-finite values and magnitudes with no fractional digits left in a
    float are returned unchanged.
    """
    if not math.isfinite(value) or abs(value) >= _NO_FRACTION_MAGNITUDE:
        return value
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_DOWN))


class NetworkCounterState:
    """Last observed cumulative counters per interface.

    Lives for the whole process and is only advanced by the snapshot builder.
    """

    def __init__(self) -> None:
        self._counters: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def get(self, name: str) -> tuple[int, int] | None:
        with self._lock:
            return self._counters.get(name)

    def advance(self, counters: Iterable[NetworkCounters]) -> tuple[NetworkUsage, ...]:
        """Store new cumulative values and return per-interface deltas sorted by name.

        An interface seen for the first time reports its full cumulative count.
        Each counter lower than its stored value is treated as reset on its
        own and reports its current cumulative count, so deltas are never
        negative. Interfaces absent from ``counters`` are forgotten.
        """
        usage: list[NetworkUsage] = []
        with self._lock:
            current: dict[str, tuple[int, int]] = {}
            for c in counters:
                prev = self._counters.get(c.name)
                if prev is None:
                    sent, recv = c.bytes_sent, c.bytes_recv
                else:
                    sent = _delta(c.bytes_sent, prev[0])
                    recv = _delta(c.bytes_recv, prev[1])
                    if c.bytes_sent < prev[0] or c.bytes_recv < prev[1]:
                        logger.info("Counters for %s went backwards, treating as reset", c.name)
                current[c.name] = (c.bytes_sent, c.bytes_recv)
                usage.append(NetworkUsage(name=c.name, bytes_sent=sent, bytes_recv=recv))
            self._counters = current
        usage.sort(key=lambda u: u.name)
        return tuple(usage)


def _delta(value: int, previous: int) -> int:
    return value - previous if value >= previous else value


class SnapshotBuilder:
    """Builds one Snapshot per call; CPU, memory, disk and network are mandatory."""

    def __init__(
        self,
        provider: MetricsProvider,
        pm2: Pm2Client | None = None,
        *,
        disk_path: str = "/",
        counter_state: NetworkCounterState | None = None,
    ) -> None:
        self._provider = provider
        self._pm2 = pm2
        self._disk_path = disk_path
        self.counter_state = counter_state or NetworkCounterState()

    def build(self) -> Snapshot:
        """Query every source and assemble a snapshot.

        Raises:
            MetricsUnavailable: a mandatory query failed. The network counter
                state is only touched once the CPU, memory and disk queries
                have succeeded.
        """
        try:
            cpu = tuple(truncate_decimals(v) for v in self._provider.cpu_percentages())
        except _PROVIDER_ERRORS as exc:
            raise MetricsUnavailable(MetricStage.CPU, exc) from exc

        try:
            memory = self._provider.memory_stats()
        except _PROVIDER_ERRORS as exc:
            raise MetricsUnavailable(MetricStage.MEMORY, exc) from exc

        try:
            disk = self._provider.disk_usage(self._disk_path)
        except _PROVIDER_ERRORS as exc:
            raise MetricsUnavailable(MetricStage.DISK, exc) from exc

        try:
            counters = self._provider.network_counters()
        except _PROVIDER_ERRORS as exc:
            raise MetricsUnavailable(MetricStage.NETWORK, exc) from exc
        network = self.counter_state.advance(counters)

        return Snapshot(
            cpu=cpu,
            memory=memory,
            disk=disk,
            network=network,
            processes=self._list_processes(),
        )

    def _list_processes(self) -> tuple[ManagedProcess, ...] | None:
        if self._pm2 is None:
            return None
        try:
            return self._pm2.list_processes()
        except ProcessManagerUnavailable as exc:
            logger.debug("Process list omitted: %s", exc)
            return None
