"""
WebSocket URL routing for the real-time order channel.

URL Patterns:
    ws/orders/?restaurant_id=<uuid>&client_type=<tag>
"""

from django.urls import path

from realtime import consumers

websocket_urlpatterns = [
    path("ws/orders/", consumers.OrderEventsConsumer.as_asgi()),
]
