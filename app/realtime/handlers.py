"""
Bridges order ledger events to connected clients.

``broadcast_order_event`` is connected to ``orders.signals.order_event`` in
RealtimeConfig.ready. The signal is sent after commit from synchronous code,
possibly in a Celery worker that holds no sockets, so the receiver builds the
envelope (which reads the database) synchronously and publishes it to the
restaurant's channel-layer group. Consumers in every ASGI process pick it up
and deliver it through their local hub.

Without a configured channel layer the envelope goes straight to this
process's hub.
"""

from __future__ import annotations

import json
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder

from realtime import envelopes
from realtime.constants import CHANNEL_GROUPS
from realtime.hub import hub, restaurant_group

logger = logging.getLogger(__name__)


def broadcast_order_event(sender, order, event_type, changes=None, **kwargs) -> None:
    restaurant_id = str(order.restaurant_id)
    # Channel layers only carry plain JSON types
    envelope = json.loads(
        json.dumps(envelopes.order_event(order, event_type, changes), cls=DjangoJSONEncoder)
    )

    channel_layer = get_channel_layer()
    if channel_layer is None:
        async_to_sync(hub.broadcast)(restaurant_id, envelope)
        return

    async_to_sync(channel_layer.group_send)(
        restaurant_group(restaurant_id),
        {"type": CHANNEL_GROUPS.ORDER_EVENT, "envelope": envelope},
    )
    logger.debug(
        f"Published {event_type}",
        extra={"restaurant_id": restaurant_id, "order_id": str(order.id)},
    )
