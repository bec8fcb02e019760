"""
Order ledger models.

Models:
    Order: A customer order with lifecycle, payment and withdrawal state
    OrderItem: A snapshotted line item
"""

from orders.models.order import Order, generate_order_number
from orders.models.order_item import OrderItem

__all__ = [
    "Order",
    "OrderItem",
    "generate_order_number",
]
