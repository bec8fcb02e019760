"""
Tests for the Notification Hub.

Tests cover:
- Registration bookkeeping per restaurant
- Broadcast isolation between restaurants
- Slow and broken connections during broadcast and per-socket delivery
- Liveness sweep and stats
"""

import time
from datetime import timedelta

import pytest
from django.utils import timezone

from realtime import envelopes
from realtime.constants import CLOSE_CODES
from realtime.hub import BroadcastResult


class TestRegistry:
    def test_register_and_unregister(self, fresh_hub, fake_socket_class, restaurant_id):
        first, second = fake_socket_class(), fake_socket_class()

        fresh_hub.register(restaurant_id, first, client_type="kitchen")
        fresh_hub.register(restaurant_id, second)

        assert fresh_hub.client_count(restaurant_id) == 2
        assert fresh_hub.unregister(restaurant_id, first) is True
        assert fresh_hub.unregister(restaurant_id, first) is False
        assert [c.socket for c in fresh_hub.connections(restaurant_id)] == [second]

    def test_same_socket_registered_once(self, fresh_hub, fake_socket_class, restaurant_id):
        socket = fake_socket_class()

        fresh_hub.register(restaurant_id, socket)
        fresh_hub.register(restaurant_id, socket)

        assert fresh_hub.client_count(restaurant_id) == 1

    def test_default_client_type(self, fresh_hub, fake_socket_class, restaurant_id):
        connection = fresh_hub.register(restaurant_id, fake_socket_class(), client_type="")

        assert connection.client_type == "unknown"

    def test_touch(self, fresh_hub, fake_socket_class, restaurant_id):
        socket = fake_socket_class()
        connection = fresh_hub.register(restaurant_id, socket)
        later = timezone.now() + timedelta(seconds=30)

        assert fresh_hub.touch(restaurant_id, socket, now=later) is True
        assert connection.last_activity == later
        assert fresh_hub.touch(restaurant_id, fake_socket_class()) is False


@pytest.mark.asyncio
class TestBroadcast:
    async def test_reaches_only_the_restaurant(self, fresh_hub, fake_socket_class, restaurant_id):
        mine, other = fake_socket_class(), fake_socket_class()
        fresh_hub.register(restaurant_id, mine)
        fresh_hub.register("another-restaurant", other)

        result = await fresh_hub.broadcast(restaurant_id, envelopes.ping())

        assert result == BroadcastResult(delivered=1, failed=0)
        assert [m["type"] for m in mine.sent] == ["ping"]
        assert other.sent == []

    async def test_no_clients(self, fresh_hub, restaurant_id):
        result = await fresh_hub.broadcast(restaurant_id, envelopes.ping())

        assert result == BroadcastResult()

    async def test_stalled_connection_does_not_block_others(
        self, fresh_hub, fake_socket_class, restaurant_id
    ):
        stalled = fake_socket_class(delay=10)
        healthy = fake_socket_class()
        fresh_hub.register(restaurant_id, stalled)
        fresh_hub.register(restaurant_id, healthy)

        started = time.monotonic()
        result = await fresh_hub.broadcast(restaurant_id, envelopes.ping())
        elapsed = time.monotonic() - started

        assert elapsed < 2
        assert result == BroadcastResult(delivered=1, failed=1)
        assert len(healthy.sent) == 1
        assert [c.socket for c in fresh_hub.connections(restaurant_id)] == [healthy]

    async def test_broken_connection_dropped(self, fresh_hub, fake_socket_class, restaurant_id):
        broken = fake_socket_class(fail=True)
        fresh_hub.register(restaurant_id, broken)

        result = await fresh_hub.broadcast(restaurant_id, envelopes.ping())

        assert result.failed == 1
        assert fresh_hub.client_count() == 0


@pytest.mark.asyncio
class TestDeliver:
    async def test_sends_to_that_socket_only(self, fresh_hub, fake_socket_class, restaurant_id):
        target, sibling = fake_socket_class(), fake_socket_class()
        fresh_hub.register(restaurant_id, target)
        fresh_hub.register(restaurant_id, sibling)

        assert await fresh_hub.deliver(restaurant_id, target, envelopes.ping()) is True

        assert [m["type"] for m in target.sent] == ["ping"]
        assert sibling.sent == []

    async def test_unregistered_socket(self, fresh_hub, fake_socket_class, restaurant_id):
        socket = fake_socket_class()

        assert await fresh_hub.deliver(restaurant_id, socket, envelopes.ping()) is False
        assert socket.sent == []

    async def test_stalled_socket_dropped(self, fresh_hub, fake_socket_class, restaurant_id):
        stalled = fake_socket_class(delay=10)
        fresh_hub.register(restaurant_id, stalled)

        started = time.monotonic()
        delivered = await fresh_hub.deliver(restaurant_id, stalled, envelopes.ping())

        assert time.monotonic() - started < 2
        assert delivered is False
        assert fresh_hub.client_count(restaurant_id) == 0


@pytest.mark.asyncio
class TestSweep:
    async def test_closes_idle_and_pings_alive(self, fresh_hub, fake_socket_class, restaurant_id):
        idle, alive = fake_socket_class(), fake_socket_class()
        now = timezone.now()
        fresh_hub.register(restaurant_id, idle).last_activity = now - timedelta(seconds=61)
        fresh_hub.register(restaurant_id, alive).last_activity = now - timedelta(seconds=59)

        result = await fresh_hub.sweep(now=now)

        assert (result.closed, result.pinged, result.failed) == (1, 1, 0)
        assert idle.closed_with == CLOSE_CODES.STALE_CONNECTION
        assert [m["type"] for m in alive.sent] == ["ping"]
        assert [c.socket for c in fresh_hub.connections()] == [alive]

    async def test_failed_ping_drops_connection(self, fresh_hub, fake_socket_class, restaurant_id):
        fresh_hub.register(restaurant_id, fake_socket_class(fail=True))

        result = await fresh_hub.sweep()

        assert result.failed == 1
        assert fresh_hub.client_count() == 0

    async def test_sweeper_disabled_with_zero_interval(self, fresh_hub):
        fresh_hub.ensure_sweeper()

        assert fresh_hub._sweeper is None


class TestStats:
    def test_counts_per_restaurant(self, fresh_hub, fake_socket_class, restaurant_id):
        now = timezone.now()
        fresh_hub.register(restaurant_id, fake_socket_class(), client_type="kitchen")
        fresh_hub.register(restaurant_id, fake_socket_class(), client_type="kitchen")
        stale = fresh_hub.register(restaurant_id, fake_socket_class(), client_type="dashboard")
        stale.last_activity = now - timedelta(minutes=5)

        stats = fresh_hub.get_stats(now=now)

        assert stats["total_clients"] == 3
        entry = stats["restaurants"][restaurant_id]
        assert entry["client_count"] == 3
        assert entry["client_types"] == {"kitchen": 2, "dashboard": 1}
        assert sorted(c["is_alive"] for c in entry["connections"]) == [False, True, True]

    def test_empty(self, fresh_hub):
        assert fresh_hub.get_stats()["total_clients"] == 0
