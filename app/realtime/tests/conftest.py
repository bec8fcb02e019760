"""
Pytest fixtures for real-time tests.

FakeSocket stands in for a WebSocket consumer: it records what the hub sends
and can be made slow or broken.

Usage:
    async def test_broadcast(fresh_hub):
        socket = FakeSocket()
        fresh_hub.register(restaurant_id, socket)
        await fresh_hub.broadcast(restaurant_id, envelopes.ping())
        assert socket.sent[0]["type"] == "ping"
"""

import asyncio
import uuid

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from realtime.hub import NotificationHub, hub


class FakeSocket:
    def __init__(self, delay: float = 0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.sent = []
        self.closed_with = None

    async def send_json(self, content, close=False):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(content)

    async def close(self, code=None):
        self.closed_with = code


@pytest.fixture
def fake_socket_class():
    return FakeSocket


@pytest.fixture
def fresh_hub():
    return NotificationHub()


@pytest.fixture(autouse=True)
def clear_global_hub():
    hub.clear()
    yield
    hub.clear()


@pytest.fixture(autouse=True)
def flush_channel_layer():
    layer = get_channel_layer()
    yield layer
    if layer is not None:
        async_to_sync(layer.flush)()


@pytest.fixture(autouse=True)
def realtime_settings(settings):
    settings.REALTIME_SWEEP_INTERVAL_SECONDS = 0
    settings.REALTIME_CONNECTION_TIMEOUT_SECONDS = 60
    settings.REALTIME_SEND_TIMEOUT_SECONDS = 0.05
    return settings


@pytest.fixture
def restaurant_id():
    return str(uuid.uuid4())
