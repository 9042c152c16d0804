"""metricast data models."""

from metricast.models.enums import BroadcastState, MetricStage
from metricast.models.runtime import (
    DiskUsage,
    ManagedProcess,
    MemoryUsage,
    NetworkCounters,
    NetworkUsage,
    Snapshot,
)

__all__ = [
    "MetricStage",
    "BroadcastState",
    "MemoryUsage",
    "DiskUsage",
    "NetworkCounters",
    "NetworkUsage",
    "ManagedProcess",
    "Snapshot",
]
