"""Enumerations for metricast models."""

from enum import Enum


class MetricStage(str, Enum):
    """Mandatory snapshot stage that can fail a build."""

    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"
    NETWORK = "network"


class BroadcastState(str, Enum):
    """Phase of the broadcast scheduler."""

    IDLE = "idle"
    SAMPLING = "sampling"
    BROADCASTING = "broadcasting"
