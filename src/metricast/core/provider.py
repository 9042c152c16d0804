"""Host metrics capture via psutil."""

from __future__ import annotations

import logging

import psutil

from metricast.models.runtime import DiskUsage, MemoryUsage, NetworkCounters

logger = logging.getLogger("metricast.provider")


class MetricsProvider:
    """Thin psutil adapter. Every method may raise ``psutil.Error`` or ``OSError``."""

    def __init__(self) -> None:
        # First per-core call returns 0.0 for every core; prime it.
        try:
            psutil.cpu_percent(interval=None, percpu=True)
        except (psutil.Error, OSError):
            logger.debug("CPU priming call failed", exc_info=True)

    def cpu_percentages(self) -> list[float]:
        """Per-core utilization since the previous call (non-blocking)."""
        return list(psutil.cpu_percent(interval=None, percpu=True))

    def memory_stats(self) -> MemoryUsage:
        mem = psutil.virtual_memory()
        return MemoryUsage(total=mem.total, free=mem.free, used=mem.used)

    def disk_usage(self, path: str = "/") -> DiskUsage:
        usage = psutil.disk_usage(path)
        return DiskUsage(total=usage.total, free=usage.free, used=usage.used)

    def network_counters(self) -> list[NetworkCounters]:
        """Cumulative byte counters for every interface, in provider order."""
        counters = psutil.net_io_counters(pernic=True)
        return [
            NetworkCounters(name=name, bytes_sent=c.bytes_sent, bytes_recv=c.bytes_recv)
            for name, c in counters.items()
        ]
