"""Tests for the subscriber liveness watcher."""

import asyncio

import pytest

from fakes import FakeChannel
from metricast.core.lifecycle import SubscriberWatcher
from metricast.core.registry import ConnectionRegistry
from metricast.core.subscriber import Subscriber


@pytest.fixture
def registry():
    return ConnectionRegistry()


class TestSubscriberWatcher:
    @pytest.mark.asyncio
    async def test_disconnect_removes_and_closes(self, registry):
        channel = FakeChannel()
        sub = Subscriber(channel)
        await registry.add(sub)
        channel.disconnect(code=1000)

        closure = await SubscriberWatcher(registry).watch(sub)

        assert closure.code == 1000
        assert sub not in registry
        assert channel.close_calls == 1

    @pytest.mark.asyncio
    async def test_inbound_frames_are_ignored(self, registry):
        channel = FakeChannel()
        sub = Subscriber(channel)
        await registry.add(sub)
        channel.push_text("ping")
        channel.push_text("anything")
        channel.disconnect()

        await SubscriberWatcher(registry).watch(sub)
        assert sub not in registry

    @pytest.mark.asyncio
    async def test_read_error_ends_watch(self, registry):
        channel = FakeChannel()
        channel.receive_error = OSError("connection reset")
        sub = Subscriber(channel)
        await registry.add(sub)

        closure = await SubscriberWatcher(registry).watch(sub)
        assert closure.code is None
        assert sub not in registry

    @pytest.mark.asyncio
    async def test_races_with_broadcast_removal(self, registry):
        channel = FakeChannel()
        sub = Subscriber(channel)
        await registry.add(sub)
        watcher = asyncio.create_task(SubscriberWatcher(registry).watch(sub))
        await asyncio.sleep(0)

        # Broadcast side drops it first.
        await registry.remove(sub)
        await sub.close()
        channel.disconnect()
        await watcher

        assert sub not in registry
        assert channel.close_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_still_reclaims(self, registry):
        channel = FakeChannel()
        sub = Subscriber(channel)
        await registry.add(sub)
        watcher = asyncio.create_task(SubscriberWatcher(registry).watch(sub))
        await asyncio.sleep(0)

        watcher.cancel()
        with pytest.raises(asyncio.CancelledError):
            await watcher
        assert sub not in registry
        assert channel.close_calls == 1
