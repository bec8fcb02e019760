"""
Notification Hub: per-restaurant registry of live WebSocket connections.

The registry is a plain dict guarded by a ``threading.Lock``. It is mutated
from the event loop (consumers connecting and disconnecting) and read from
worker threads (signal receivers after a commit), so every access takes the
lock and no coroutine is awaited while it is held.

Fan-out across processes:
    Every consumer joins the channel-layer group ``restaurant_<id>``
    (see ``restaurant_group``). Ledger events are published to that group
    from whichever process committed them (web worker, Celery worker), and
    each consumer hands the envelope to its own process's hub through
    ``deliver``. With no channel layer configured, ``broadcast`` fans out
    to the local registry directly.

Delivery:
    1. Snapshot the target connections under the lock
    2. Send to them concurrently, each send bounded by
       REALTIME_SEND_TIMEOUT_SECONDS
    3. Unregister every connection whose send failed or timed out

Liveness:
    ``sweep`` closes and unregisters connections idle for longer than
    REALTIME_CONNECTION_TIMEOUT_SECONDS and pings the rest. A sweeper task
    runs it every REALTIME_SWEEP_INTERVAL_SECONDS while connections exist.

Usage:
    from realtime.hub import hub

    hub.register(restaurant_id, consumer, client_type="kitchen")
    result = await hub.broadcast(restaurant_id, envelope)
    result.delivered, result.failed
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

from django.conf import settings
from django.utils import timezone

from realtime import envelopes
from realtime.constants import CHANNEL_GROUPS, CLIENT_CONFIG, CLOSE_CODES

logger = logging.getLogger(__name__)


def restaurant_group(restaurant_id) -> str:
    """Channel-layer group every connection of ``restaurant_id`` joins."""
    return f"{CHANNEL_GROUPS.RESTAURANT_PREFIX}{restaurant_id}"


class Sendable(Protocol):
    """What the hub needs from a connection (OrderEventsConsumer satisfies it)."""

    async def send_json(self, content: dict[str, Any], close: bool = False) -> None: ...

    async def close(self, code: int | None = None) -> None: ...


@dataclass
class Connection:
    restaurant_id: str
    socket: Sendable
    client_type: str = CLIENT_CONFIG.DEFAULT_CLIENT_TYPE
    connected_at: datetime = field(default_factory=timezone.now)
    last_activity: datetime = field(default_factory=timezone.now)

    def idle_for(self, now: datetime) -> timedelta:
        return now - self.last_activity


@dataclass(frozen=True)
class BroadcastResult:
    delivered: int = 0
    failed: int = 0


@dataclass(frozen=True)
class SweepResult:
    closed: int = 0
    pinged: int = 0
    failed: int = 0


class NotificationHub:
    """Thread-safe registry of connections keyed by restaurant id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: dict[str, dict[int, Connection]] = {}
        self._sweeper: asyncio.Task | None = None

    # ==========================================================================
    # Settings
    # ==========================================================================

    @staticmethod
    def send_timeout() -> float:
        return float(settings.REALTIME_SEND_TIMEOUT_SECONDS)

    @staticmethod
    def connection_timeout() -> timedelta:
        return timedelta(seconds=settings.REALTIME_CONNECTION_TIMEOUT_SECONDS)

    @staticmethod
    def sweep_interval() -> float:
        return float(settings.REALTIME_SWEEP_INTERVAL_SECONDS)

    # ==========================================================================
    # Registry
    # ==========================================================================

    def register(
        self,
        restaurant_id,
        socket: Sendable,
        client_type: str = CLIENT_CONFIG.DEFAULT_CLIENT_TYPE,
    ) -> Connection:
        restaurant_id = str(restaurant_id)
        connection = Connection(
            restaurant_id=restaurant_id,
            socket=socket,
            client_type=client_type or CLIENT_CONFIG.DEFAULT_CLIENT_TYPE,
        )
        with self._lock:
            self._connections.setdefault(restaurant_id, {})[id(socket)] = connection
            count = len(self._connections[restaurant_id])
        logger.info(
            f"Client connected: {connection.client_type}",
            extra={"restaurant_id": restaurant_id, "connections": count},
        )
        return connection

    def unregister(self, restaurant_id, socket: Sendable) -> bool:
        """Remove ``socket``; returns False if it was not registered."""
        restaurant_id = str(restaurant_id)
        with self._lock:
            members = self._connections.get(restaurant_id)
            if not members or members.pop(id(socket), None) is None:
                return False
            if not members:
                del self._connections[restaurant_id]
            remaining = len(members)
        logger.info(
            "Client removed",
            extra={"restaurant_id": restaurant_id, "connections": remaining},
        )
        return True

    def touch(self, restaurant_id, socket: Sendable, now: datetime | None = None) -> bool:
        """Refresh a connection's last activity (pong/heartbeat)."""
        with self._lock:
            connection = self._connections.get(str(restaurant_id), {}).get(id(socket))
            if connection is None:
                return False
            connection.last_activity = now or timezone.now()
        return True

    def connections(self, restaurant_id=None) -> list[Connection]:
        """Snapshot of one restaurant's connections, or of all of them."""
        with self._lock:
            if restaurant_id is not None:
                return list(self._connections.get(str(restaurant_id), {}).values())
            return [c for members in self._connections.values() for c in members.values()]

    def client_count(self, restaurant_id=None) -> int:
        return len(self.connections(restaurant_id))

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()

    # ==========================================================================
    # Delivery
    # ==========================================================================

    async def _send(self, connection: Connection, envelope: dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(
                connection.socket.send_json(envelope), timeout=self.send_timeout()
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Send timed out, dropping connection",
                extra={
                    "restaurant_id": connection.restaurant_id,
                    "client_type": connection.client_type,
                    "event_type": envelope.get("type"),
                },
            )
            return False
        except Exception as e:
            logger.warning(
                f"Send failed, dropping connection: {e}",
                extra={
                    "restaurant_id": connection.restaurant_id,
                    "client_type": connection.client_type,
                    "event_type": envelope.get("type"),
                },
            )
            return False
        return True

    async def broadcast(self, restaurant_id, envelope: dict[str, Any]) -> BroadcastResult:
        """
        Send ``envelope`` to every connection of the restaurant.

        A slow or broken connection never delays the others: sends run
        concurrently and the ones that fail or time out are unregistered.
        """
        restaurant_id = str(restaurant_id)
        snapshot = self.connections(restaurant_id)
        if not snapshot:
            logger.debug(
                "No connected clients",
                extra={"restaurant_id": restaurant_id, "event_type": envelope.get("type")},
            )
            return BroadcastResult()

        outcomes = await asyncio.gather(*(self._send(c, envelope) for c in snapshot))
        failed = [c for c, ok in zip(snapshot, outcomes) if not ok]
        for connection in failed:
            self.unregister(restaurant_id, connection.socket)

        result = BroadcastResult(delivered=len(snapshot) - len(failed), failed=len(failed))
        logger.info(
            f"Broadcast {envelope.get('type')}: {result.delivered} delivered, {result.failed} failed",
            extra={"restaurant_id": restaurant_id},
        )
        return result

    async def deliver(self, restaurant_id, socket: Sendable, envelope: dict[str, Any]) -> bool:
        """
        Send ``envelope`` to one registered connection.

        Called by a consumer for the group messages it receives. Returns False
        when the socket is not (or no longer) registered, or when the send
        failed or timed out, in which case the connection is unregistered.
        """
        restaurant_id = str(restaurant_id)
        with self._lock:
            connection = self._connections.get(restaurant_id, {}).get(id(socket))
        if connection is None:
            return False
        if await self._send(connection, envelope):
            return True
        self.unregister(restaurant_id, socket)
        return False

    # ==========================================================================
    # Liveness
    # ==========================================================================

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Close idle connections and ping the others."""
        now = now or timezone.now()
        timeout = self.connection_timeout()
        snapshot = self.connections()

        stale = [c for c in snapshot if c.idle_for(now) > timeout]
        alive = [c for c in snapshot if c.idle_for(now) <= timeout]

        for connection in stale:
            self.unregister(connection.restaurant_id, connection.socket)
            logger.info(
                "Closing dead connection",
                extra={
                    "restaurant_id": connection.restaurant_id,
                    "client_type": connection.client_type,
                },
            )
        if stale:
            await asyncio.gather(*(self._close(c) for c in stale))

        envelope = envelopes.ping()
        outcomes = await asyncio.gather(*(self._send(c, envelope) for c in alive))
        failed = [c for c, ok in zip(alive, outcomes) if not ok]
        for connection in failed:
            self.unregister(connection.restaurant_id, connection.socket)

        return SweepResult(
            closed=len(stale),
            pinged=len(alive) - len(failed),
            failed=len(failed),
        )

    async def _close(self, connection: Connection) -> None:
        try:
            await asyncio.wait_for(
                connection.socket.close(code=CLOSE_CODES.STALE_CONNECTION),
                timeout=self.send_timeout(),
            )
        except Exception as e:
            logger.debug(f"Closing stale connection failed: {e}")

    async def _sweep_forever(self) -> None:
        interval = self.sweep_interval()
        while True:
            await asyncio.sleep(interval)
            await self.sweep()
            if not self.client_count():
                logger.debug("No connections left, stopping sweeper")
                return

    def ensure_sweeper(self) -> None:
        """
        Start the sweeper on the running loop if it is not already running.

        Disabled when REALTIME_SWEEP_INTERVAL_SECONDS is 0.
        """
        if self.sweep_interval() <= 0:
            return
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    # ==========================================================================
    # Stats
    # ==========================================================================

    def get_stats(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or timezone.now()
        timeout = self.connection_timeout()
        restaurants: dict[str, dict[str, Any]] = {}
        snapshot = self.connections()
        for connection in snapshot:
            entry = restaurants.setdefault(
                connection.restaurant_id,
                {"client_count": 0, "client_types": Counter(), "connections": []},
            )
            entry["client_count"] += 1
            entry["client_types"][connection.client_type] += 1
            entry["connections"].append(
                {
                    "client_type": connection.client_type,
                    "connected_at": connection.connected_at.isoformat(),
                    "last_activity": connection.last_activity.isoformat(),
                    "is_alive": connection.idle_for(now) <= timeout,
                }
            )
        for entry in restaurants.values():
            entry["client_types"] = dict(entry["client_types"])
        return {
            "total_clients": len(snapshot),
            "restaurants": restaurants,
            "generated_at": now.isoformat(),
        }


hub = NotificationHub()
