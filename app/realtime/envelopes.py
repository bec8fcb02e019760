"""
JSON envelopes pushed to real-time clients.

Every envelope has the shape ``{"type": ..., **payload, "timestamp": <ISO 8601>}``.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from orders.signals import OrderEventType
from realtime.constants import EVENT_TYPES

if TYPE_CHECKING:
    from orders.models import Order


ORDER_EVENT_MESSAGES = {
    OrderEventType.NEW_ORDER: "New order received",
    OrderEventType.ORDER_UPDATED: "Order status updated",
    OrderEventType.ORDER_PAID: "Order marked as paid",
}


def build_envelope(
    event_type: str,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    envelope = {"type": event_type, **(payload or {})}
    envelope["timestamp"] = (now or timezone.now()).isoformat()
    return envelope


def connection_established(restaurant_id: str, client_type: str) -> dict[str, Any]:
    return build_envelope(
        EVENT_TYPES.CONNECTION_ESTABLISHED,
        {
            "message": "WebSocket connection established successfully",
            "restaurant_id": restaurant_id,
            "client_type": client_type,
        },
    )


def ping() -> dict[str, Any]:
    return build_envelope(EVENT_TYPES.PING)


def error(message: str) -> dict[str, Any]:
    return build_envelope(EVENT_TYPES.ERROR, {"message": message})


def order_event(
    order: Order,
    event_type: str,
    changes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Envelope for a ledger event; the order is rendered with OrderSerializer.

    Example:
        {
            "type": "order_paid",
            "order": {...},
            "message": "Order marked as paid",
            "changes": {"payment_status": "paid"},
            "timestamp": "2026-03-01T12:00:00+00:00"
        }
    """
    from orders.serializers import OrderSerializer

    return build_envelope(
        event_type,
        {
            "order": OrderSerializer(order).data,
            "message": ORDER_EVENT_MESSAGES.get(event_type, "Order event"),
            "changes": changes or {},
        },
    )
