"""Exception hierarchy for metricast."""

from __future__ import annotations

from metricast.models.enums import MetricStage


class MetricastError(Exception):
    """Base class for all metricast errors."""


class MetricsUnavailable(MetricastError):
    """A mandatory metric query failed; the current tick produces no snapshot."""

    def __init__(self, stage: MetricStage, cause: BaseException | None = None) -> None:
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{stage.value} metrics unavailable{detail}")


class ProcessManagerUnavailable(MetricastError):
    """The process manager could not be queried. Never fatal to a snapshot."""


class DeliveryFailed(MetricastError):
    """A snapshot could not be written to one subscriber."""

    def __init__(self, subscriber_id: str, reason: str) -> None:
        self.subscriber_id = subscriber_id
        self.reason = reason
        super().__init__(f"delivery to {subscriber_id} failed: {reason}")


class SubscriberClosed(MetricastError):
    """The subscriber closed its side of the channel or errored on read."""

    def __init__(self, subscriber_id: str, code: int | None = None) -> None:
        self.subscriber_id = subscriber_id
        self.code = code
        suffix = f" (code {code})" if code is not None else ""
        super().__init__(f"subscriber {subscriber_id} closed{suffix}")


class UpgradeFailed(MetricastError):
    """An inbound request could not be upgraded to a WebSocket."""

    message = "Could not open websocket connection"
