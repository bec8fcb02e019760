"""
OrderItem model: one snapshotted line of an order.

Name and unit price are copied from the menu when the order is placed, so
later menu edits never change what the customer owes.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class OrderItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    Fields:
        order: Parent order
        position: Zero-based position within the order
        menu_item_id: Reference to the menu item (menus live elsewhere)
        name: Menu item name at ordering time
        quantity: Units ordered (>= 1)
        unit_price: Price per unit at ordering time (>= 0)
        special_instructions: Optional note for the kitchen
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Order this line belongs to",
    )

    position = models.PositiveIntegerField(
        default=0,
        help_text="Position of the line within the order",
    )

    menu_item_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Menu item reference",
    )

    name = models.CharField(
        max_length=200,
        help_text="Menu item name at ordering time",
    )

    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Units ordered",
    )

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Unit price snapshotted at ordering time",
    )

    special_instructions = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Customer note for this line",
    )

    class Meta:
        ordering = ["order", "position"]
        verbose_name = "Order item"
        verbose_name_plural = "Order items"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_item_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name="order_item_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.name}"

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity
