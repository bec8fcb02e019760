"""
Real-time application configuration.

This app provides:
- The per-process Notification Hub (connection registry, broadcast, sweep)
- The WebSocket consumer restaurant clients connect to
- The receiver publishing order ledger events to the restaurant group
"""

from django.apps import AppConfig


class RealtimeConfig(AppConfig):
    """Configuration for the realtime application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "realtime"
    verbose_name = "Real-time"

    def ready(self):
        from orders.signals import order_event
        from realtime.handlers import broadcast_order_event

        order_event.connect(
            broadcast_order_event,
            dispatch_uid="realtime.broadcast_order_event",
        )
