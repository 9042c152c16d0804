"""Frozen dataclass models for sampled host metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class MemoryUsage:
    """Virtual memory totals in bytes."""

    total: int
    free: int
    used: int


@dataclass(frozen=True, slots=True)
class DiskUsage:
    """Usage of one mounted volume in bytes."""

    total: int
    free: int
    used: int


@dataclass(frozen=True, slots=True)
class NetworkCounters:
    """Cumulative per-interface byte counters as reported by the OS."""

    name: str
    bytes_sent: int
    bytes_recv: int


@dataclass(frozen=True, slots=True)
class NetworkUsage:
    """Bytes moved on one interface since the previous snapshot."""

    name: str
    bytes_sent: int
    bytes_recv: int


@dataclass(frozen=True, slots=True)
class ManagedProcess:
    """One process as listed by the pm2 process manager."""

    name: str
    pid: int
    pm_id: int
    memory: int  # monit.memory, bytes
    cpu: int  # monit.cpu, percent
    status: str  # pm2_env.status: online, stopped, errored, ...


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One fully assembled metrics sample, broadcast once and discarded."""

    cpu: tuple[float, ...]
    memory: MemoryUsage
    disk: DiskUsage
    network: tuple[NetworkUsage, ...] = ()
    processes: tuple[ManagedProcess, ...] | None = None
    taken_at: datetime = field(default_factory=_now)

    def to_payload(self) -> dict:
        """Wire representation; ``pm2`` is omitted when processes are unknown."""
        payload: dict = {
            "cpu": list(self.cpu),
            "memory": {
                "total": self.memory.total,
                "free": self.memory.free,
                "used": self.memory.used,
            },
            "disk": {
                "total": self.disk.total,
                "free": self.disk.free,
                "used": self.disk.used,
            },
            "network": [
                {"name": n.name, "bytes_sent": n.bytes_sent, "bytes_recv": n.bytes_recv}
                for n in self.network
            ],
        }
        if self.processes is not None:
            payload["pm2"] = [
                {
                    "name": p.name,
                    "pid": p.pid,
                    "pm_id": p.pm_id,
                    "monit": {"memory": p.memory, "cpu": p.cpu},
                    "pm2_env": {"status": p.status},
                }
                for p in self.processes
            ]
        return payload
