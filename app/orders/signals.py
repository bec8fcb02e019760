"""
Domain events emitted by the order ledger.

Every state-changing OrderService operation calls ``emit_order_event``. The
signal is sent only after the surrounding transaction commits, so receivers
never see a change that was rolled back.

Receivers:
    realtime.handlers.broadcast_order_event (connected in RealtimeConfig.ready)

Usage:
    from orders.signals import order_event

    @receiver(order_event)
    def on_order_event(sender, order, event_type, **kwargs):
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import models, transaction
from django.dispatch import Signal

if TYPE_CHECKING:
    from orders.models import Order

logger = logging.getLogger(__name__)


class OrderEventType(models.TextChoices):
    NEW_ORDER = "new_order", "New order"
    ORDER_UPDATED = "order_updated", "Order updated"
    ORDER_PAID = "order_paid", "Order paid"


# Arguments: order, event_type, changes
order_event = Signal()


def emit_order_event(
    order: Order,
    event_type: str,
    changes: dict | None = None,
) -> None:
    """Send ``order_event`` once the current transaction commits."""

    def _send():
        logger.debug(
            f"Emitting {event_type} for order {order.order_number}",
            extra={"order_id": str(order.id), "restaurant_id": str(order.restaurant_id)},
        )
        order_event.send_robust(
            sender=order.__class__,
            order=order,
            event_type=event_type,
            changes=changes or {},
        )

    transaction.on_commit(_send)
