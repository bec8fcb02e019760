"""
WebSocket consumer for the real-time order channel.

Consumers:
    OrderEventsConsumer: Restaurant dashboards, kitchen screens and customer
        pages listening for order events

Connection:
    ws/orders/?restaurant_id=<uuid>&client_type=<tag>
    (``restaurantId`` / ``clientType`` are accepted as well)

Close Codes:
    4000: restaurant_id missing or not a UUID
    4004: restaurant unknown or inactive
    4008: closed by the liveness sweep

Message Types (from client):
    - pong / heartbeat: refresh liveness

Message Types (to client):
    - connection_established, new_order, order_updated, order_paid, ping, error

Groups:
    restaurant_<id>: order events published by realtime.handlers from any
    process; each message is delivered through this process's hub
"""

from __future__ import annotations

import json
import logging
from urllib.parse import parse_qs
from uuid import UUID

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.core.serializers.json import DjangoJSONEncoder

from realtime import envelopes
from realtime.constants import CLIENT_CONFIG, CLOSE_CODES
from realtime.hub import hub, restaurant_group
from restaurants.models import Restaurant

logger = logging.getLogger(__name__)


class OrderEventsConsumer(AsyncJsonWebsocketConsumer):
    """
    Registers the socket with the Notification Hub for one restaurant and
    joins the restaurant's channel-layer group.

    Order events arrive as group messages (see realtime.handlers) and are
    handed to the hub, which bounds the send and drops the connection when
    it fails. Client messages are limited to liveness.

    Attributes:
        restaurant_id: Restaurant the socket listens to (after connect)
        client_type: Free-form tag reported by the client
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.restaurant_id: str | None = None
        self.client_type: str = CLIENT_CONFIG.DEFAULT_CLIENT_TYPE

    async def connect(self):
        params = parse_qs(self.scope.get("query_string", b"").decode())
        raw_id = self._param(params, "restaurant_id", "restaurantId")
        client_type = self._param(params, "client_type", "clientType")
        if client_type:
            self.client_type = client_type[: CLIENT_CONFIG.MAX_CLIENT_TYPE_LENGTH]

        try:
            restaurant_id = str(UUID(raw_id))
        except (TypeError, ValueError):
            logger.warning(f"Rejected connection without a valid restaurant id: {raw_id!r}")
            await self.close(code=CLOSE_CODES.INVALID_RESTAURANT)
            return

        if not await self._restaurant_is_active(restaurant_id):
            logger.warning(
                "Rejected connection to unknown restaurant",
                extra={"restaurant_id": restaurant_id},
            )
            await self.close(code=CLOSE_CODES.RESTAURANT_NOT_FOUND)
            return

        self.restaurant_id = restaurant_id
        if self.channel_layer is not None:
            await self.channel_layer.group_add(restaurant_group(restaurant_id), self.channel_name)

        await self.accept()
        hub.register(restaurant_id, self, client_type=self.client_type)
        hub.ensure_sweeper()
        await self.send_json(envelopes.connection_established(restaurant_id, self.client_type))

    async def disconnect(self, close_code):
        if self.restaurant_id:
            if self.channel_layer is not None:
                await self.channel_layer.group_discard(
                    restaurant_group(self.restaurant_id), self.channel_name
                )
            hub.unregister(self.restaurant_id, self)
            logger.info(
                f"WebSocket disconnected: {close_code}",
                extra={"restaurant_id": self.restaurant_id, "client_type": self.client_type},
            )

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if text_data is None:
            return
        try:
            content = await self.decode_json(text_data)
        except ValueError:
            await self.send_json(envelopes.error("Malformed JSON"))
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        message_type = content.get("type") if isinstance(content, dict) else None

        if message_type in CLIENT_CONFIG.LIVENESS_MESSAGES:
            hub.touch(self.restaurant_id, self)
        else:
            await self.send_json(envelopes.error(f"Unknown message type: {message_type}"))

    async def order_event(self, event):
        """Group message from realtime.handlers.broadcast_order_event."""
        await hub.deliver(self.restaurant_id, self, event["envelope"])

    @classmethod
    async def encode_json(cls, content):
        return json.dumps(content, cls=DjangoJSONEncoder)

    @staticmethod
    def _param(params: dict[str, list[str]], *names: str) -> str | None:
        for name in names:
            values = params.get(name)
            if values and values[0]:
                return values[0]
        return None

    @database_sync_to_async
    def _restaurant_is_active(self, restaurant_id: str) -> bool:
        return Restaurant.objects.filter(id=restaurant_id, is_active=True).exists()
