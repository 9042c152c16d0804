"""Subscriber handle wrapping one WebSocket channel."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from starlette.websockets import WebSocketDisconnect

from metricast.errors import DeliveryFailed, SubscriberClosed

logger = logging.getLogger("metricast.subscriber")

# Errors a broken or closed channel can raise on send/receive.
_CHANNEL_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class Channel(Protocol):
    """The subset of ``starlette.websockets.WebSocket`` a subscriber needs."""

    async def send_text(self, data: str) -> None: ...

    async def receive(self) -> dict[str, Any]: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class Subscriber:
    """One connected client. Hashable by identity; never mutated apart from closing."""

    def __init__(self, channel: Channel, client: str = "unknown") -> None:
        self.subscriber_id = uuid.uuid4().hex
        self.client = client
        self.connected_at = datetime.now(timezone.utc)
        self._channel = channel
        self._closed = False

    def __repr__(self) -> str:
        return f"Subscriber({self.subscriber_id[:8]} {self.client})"

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, text: str, timeout: float) -> None:
        """Write one text frame, bounded by ``timeout`` seconds.

        Raises:
            DeliveryFailed: the write errored, timed out, or the channel is closed.
        """
        if self._closed:
            raise DeliveryFailed(self.subscriber_id, "channel closed")
        try:
            await asyncio.wait_for(self._channel.send_text(text), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise DeliveryFailed(self.subscriber_id, f"send timed out after {timeout}s") from exc
        except _CHANNEL_ERRORS as exc:
            raise DeliveryFailed(self.subscriber_id, str(exc) or type(exc).__name__) from exc

    async def receive(self) -> None:
        """Wait for the next inbound frame and discard it.

        Raises:
            SubscriberClosed: the client disconnected or the read failed.
        """
        try:
            message = await self._channel.receive()
        except WebSocketDisconnect as exc:
            raise SubscriberClosed(self.subscriber_id, exc.code) from exc
        except (RuntimeError, OSError) as exc:
            raise SubscriberClosed(self.subscriber_id) from exc
        if message.get("type") == "websocket.disconnect":
            raise SubscriberClosed(self.subscriber_id, message.get("code"))

    async def close(self) -> None:
        """Close the channel. Idempotent; errors from a dead channel are logged."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._channel.close()
        except _CHANNEL_ERRORS:
            logger.debug("Close on %r failed, channel already gone", self, exc_info=True)
