"""
Serializers for the payments API.

Serializer Hierarchy:
    CollectPaymentSerializer: Collection request for an order
    PaymentStatusSerializer: Stored payment state for a transaction id
    EligibleOrderSerializer: Order row in the withdrawal picker
    WithdrawalCreateSerializer: Authorize-and-settle request
    PaymentWithdrawalSerializer: Batch read model
    SecurityCodeStatusSerializer / SecurityCodeUpdateSerializer: Security Gate

Design Decisions:
    - The security code is write-only and never echoed back
    - Amounts are rendered as strings (DRF decimal default)
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order
from orders.state_machines import PaymentMethod
from payments.models import PaymentWithdrawal
from payments.state_machines import WithdrawalMethod
from restaurants.models import StaffRole


# =============================================================================
# Collection
# =============================================================================


class CollectPaymentSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    phone_number = serializers.RegexField(
        r"^\+?\d{8,15}$",
        help_text="Mobile-money number to charge",
    )
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=1,
        required=False,
        allow_null=True,
        help_text="Defaults to the order total",
    )
    payment_method = serializers.ChoiceField(
        choices=[(m.value, m.label) for m in PaymentMethod if m in PaymentMethod.mobile_money()],
        required=False,
        allow_blank=True,
        default="",
    )


class CollectPaymentResponseSerializer(serializers.Serializer):
    transaction_id = serializers.CharField()
    status = serializers.CharField()
    reference = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)


class PaymentStatusSerializer(serializers.Serializer):
    transaction_id = serializers.CharField()
    status = serializers.CharField(required=False)
    message = serializers.CharField(required=False)
    order_id = serializers.UUIDField(required=False)
    order_number = serializers.CharField(required=False)
    payment_status = serializers.CharField(required=False)
    provider_status = serializers.CharField(required=False)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    service_charge = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    remote_status = serializers.CharField(required=False, allow_null=True)
    remote_error = serializers.CharField(required=False)
    checked_at = serializers.DateTimeField()


# =============================================================================
# Withdrawals
# =============================================================================


class EligibleOrderSerializer(serializers.ModelSerializer):
    service_charge = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "payment_method",
            "payment_transaction_id",
            "total_amount",
            "amount_paid_with_charges",
            "service_charge",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class EligibleQuerySerializer(serializers.Serializer):
    restaurant_id = serializers.UUIDField()
    date = serializers.DateField(help_text="UTC day (YYYY-MM-DD)")
    payment_method = serializers.ChoiceField(choices=WithdrawalMethod.choices)


class EligibleSummaryQuerySerializer(serializers.Serializer):
    restaurant_id = serializers.UUIDField()
    date = serializers.DateField(help_text="UTC day (YYYY-MM-DD)")


class EligibleSummarySerializer(serializers.Serializer):
    payment_method = serializers.CharField()
    order_count = serializers.IntegerField()
    withdrawal_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    customer_charges = serializers.DecimalField(max_digits=12, decimal_places=2)


class WithdrawalCreateSerializer(serializers.Serializer):
    """Authorize-and-settle request."""

    restaurant_id = serializers.UUIDField()
    order_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    security_code = serializers.CharField(write_only=True, trim_whitespace=False)
    payment_method = serializers.ChoiceField(choices=WithdrawalMethod.choices)
    withdrawal_date = serializers.DateField()
    authorized_role = serializers.ChoiceField(choices=StaffRole.choices)
    custom_role = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    payment_phone_number = serializers.CharField(
        max_length=32, required=False, allow_blank=True, default=""
    )
    disburse = serializers.BooleanField(
        required=False,
        default=False,
        help_text="Pay the batch out to payment_phone_number through the provider",
    )


class PaymentWithdrawalSerializer(serializers.ModelSerializer):
    restaurant_id = serializers.UUIDField(read_only=True)
    authorized_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    order_ids = serializers.SerializerMethodField()

    class Meta:
        model = PaymentWithdrawal
        fields = [
            "id",
            "withdrawal_number",
            "restaurant_id",
            "payment_method",
            "withdrawal_date",
            "order_count",
            "order_ids",
            "withdrawal_amount",
            "customer_charges",
            "withdrawal_fee",
            "fee_percent",
            "net_profit",
            "authorized_by_id",
            "authorized_role",
            "custom_role",
            "security_check_outcome",
            "authorized_at",
            "status",
            "processed_at",
            "completed_at",
            "failure_reason",
            "notes",
            "payment_phone_number",
            "transaction_id",
            "created_at",
        ]
        read_only_fields = fields

    def get_order_ids(self, obj) -> list[str]:
        return [str(pk) for pk in obj.orders.values_list("id", flat=True)]


class WithdrawalSummaryQuerySerializer(serializers.Serializer):
    restaurant_id = serializers.UUIDField()
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs):
        if attrs["end"] < attrs["start"]:
            raise serializers.ValidationError({"end": "Must not be before start."})
        return attrs


# =============================================================================
# Security Gate
# =============================================================================


class SecurityCodeStatusSerializer(serializers.Serializer):
    is_set = serializers.BooleanField()
    is_locked = serializers.BooleanField()
    remaining_attempts = serializers.IntegerField()
    lock_until = serializers.DateTimeField(allow_null=True)
    last_changed_at = serializers.DateTimeField(allow_null=True)


class SecurityCodeUpdateSerializer(serializers.Serializer):
    """
    Provision (no code yet) or rotate (current_code required) the code.
    """

    restaurant_id = serializers.UUIDField()
    new_code = serializers.CharField(write_only=True, trim_whitespace=False)
    current_code = serializers.CharField(
        write_only=True, required=False, allow_blank=True, default="", trim_whitespace=False
    )
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
