"""
Serializers for the orders API.

Serializer Hierarchy:
    OrderItemSerializer: Read-only line item
    OrderSerializer: Full order with items and derived financials
    OrderCreateSerializer: Order placement (line items + customer info)
    OrderStatusSerializer: Lifecycle transition request
    ManualPaymentSerializer: Staff payment override

Design Decisions:
    - Read and write serializers are separate
    - Amounts are rendered as strings (DRF decimal default)
    - OrderSerializer output is also the payload of realtime order events
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order, OrderItem
from orders.state_machines import OrderStatus, OrderType, PaymentMethod


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "position",
            "menu_item_id",
            "name",
            "quantity",
            "unit_price",
            "line_total",
            "special_instructions",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Full order representation."""

    items = OrderItemSerializer(many=True, read_only=True)
    service_charge = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )
    restaurant_id = serializers.UUIDField(read_only=True)
    table_id = serializers.UUIDField(read_only=True, allow_null=True)
    withdrawal_batch_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "restaurant_id",
            "table_id",
            "order_type",
            "customer_name",
            "customer_phone",
            "customer_email",
            "customer_notes",
            "status",
            "payment_status",
            "total_amount",
            "amount_paid_with_charges",
            "service_charge",
            "payment_method",
            "payment_transaction_id",
            "payment_provider_status",
            "payment_currency",
            "payment_recorded_at",
            "payment_notes",
            "withdrawn",
            "withdrawal_batch_id",
            "is_eligible_for_withdrawal",
            "paid_at",
            "confirmed_at",
            "served_at",
            "completed_at",
            "cancelled_at",
            "version",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class LineItemInputSerializer(serializers.Serializer):
    menu_item_id = serializers.UUIDField(required=False, allow_null=True)
    name = serializers.CharField(max_length=200)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    special_instructions = serializers.CharField(
        max_length=500, required=False, allow_blank=True, default=""
    )


class OrderCreateSerializer(serializers.Serializer):
    """
    Serializer for placing an order.

    Prices are taken from the request as the menu snapshot; the menu service
    that renders them is the source of truth.
    """

    restaurant_id = serializers.UUIDField()
    table_id = serializers.UUIDField(required=False, allow_null=True)
    items = LineItemInputSerializer(many=True, allow_empty=False)
    order_type = serializers.ChoiceField(
        choices=OrderType.choices, default=OrderType.DINE_IN
    )
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, required=False, allow_blank=True, default=""
    )
    customer_name = serializers.CharField(
        max_length=200, required=False, allow_blank=True, default=""
    )
    customer_phone = serializers.CharField(
        max_length=32, required=False, allow_blank=True, default=""
    )
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    customer_notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    version = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Version the client last saw; rejected with 409 if stale",
    )
    force = serializers.BooleanField(
        default=False,
        help_text="Staff override allowing a move back to an earlier open status",
    )


class ManualPaymentSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
        help_text="Amount collected; defaults to the order total",
    )
    note = serializers.CharField(required=False, allow_blank=True, default="")
