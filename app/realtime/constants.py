"""
Constants for the real-time order channel.

Timeouts and the sweep interval are environment-tunable and live in settings
(REALTIME_*); the values here are protocol constants.

Import example:
    from realtime.constants import CLOSE_CODES, EVENT_TYPES
"""

from typing import Final


class CLOSE_CODES:
    """WebSocket close codes sent by OrderEventsConsumer."""

    INVALID_RESTAURANT: Final[int] = 4000
    RESTAURANT_NOT_FOUND: Final[int] = 4004
    STALE_CONNECTION: Final[int] = 4008


class EVENT_TYPES:
    """Envelope ``type`` values."""

    # Server -> client
    CONNECTION_ESTABLISHED: Final[str] = "connection_established"
    NEW_ORDER: Final[str] = "new_order"
    ORDER_UPDATED: Final[str] = "order_updated"
    ORDER_PAID: Final[str] = "order_paid"
    PING: Final[str] = "ping"
    ERROR: Final[str] = "error"

    # Client -> server
    PONG: Final[str] = "pong"
    HEARTBEAT: Final[str] = "heartbeat"


class CHANNEL_GROUPS:
    """Channel-layer names used to fan order events out across processes."""

    RESTAURANT_PREFIX: Final[str] = "restaurant_"
    # Group message type, dispatched to OrderEventsConsumer.order_event
    ORDER_EVENT: Final[str] = "order.event"


class CLIENT_CONFIG:
    DEFAULT_CLIENT_TYPE: Final[str] = "unknown"
    MAX_CLIENT_TYPE_LENGTH: Final[int] = 32
    # Client messages that refresh liveness
    LIVENESS_MESSAGES: Final[frozenset] = frozenset({"pong", "heartbeat"})
