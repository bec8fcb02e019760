"""
Order model: one customer purchase attempt and its financial state.

An Order carries two independent django-fsm fields:
- ``status``: kitchen/floor lifecycle (pending → ... → completed | cancelled)
- ``payment_status``: pending → paid → refunded

Derived values:
- ``service_charge`` = amount_paid_with_charges - total_amount
- ``is_eligible_for_withdrawal`` recomputed on every save

Usage:
    from orders.models import Order
    from orders.services import OrderService

    order = OrderService.create(restaurant=restaurant, line_items=[...])
    order = OrderService.transition_status(order, OrderStatus.PREPARING)

Note:
    Both FSM fields are protected; change them through OrderService or the
    transition methods below, never by assignment. Re-read instances with
    ``Order.objects.get`` rather than ``refresh_from_db()``.
"""

from __future__ import annotations

import secrets
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django_fsm import RETURN_VALUE, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from orders.state_machines import (
    ORDER_STATUS_REGRESSIONS,
    PAYMENT_STATUS_TRANSITIONS,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    ProviderPaymentStatus,
    sources_for,
)

ORDER_NUMBER_PREFIX = "ORD"


def generate_order_number() -> str:
    """Return ``ORD-<epoch milliseconds>-<0..999>``."""
    millis = int(timezone.now().timestamp() * 1000)
    return f"{ORDER_NUMBER_PREFIX}-{millis}-{secrets.randbelow(1000)}"


class OrderQuerySet(models.QuerySet):
    def for_restaurant(self, restaurant_id):
        return self.filter(restaurant_id=restaurant_id)

    def match_provider_event(self, reference: str | None, transaction_id: str | None):
        """
        Find the order a provider event refers to.

        Tries the order number first, then the stored provider transaction id.
        """
        if reference:
            order = self.filter(order_number=reference).first()
            if order is not None:
                return order
        if transaction_id:
            return self.filter(payment_transaction_id=transaction_id).first()
        return None


class Order(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A customer order and its payment/withdrawal bookkeeping.

    Fields:
        order_number: Public identifier, used as the provider payment reference
        restaurant: Owning tenant
        table: Optional dine-in table
        status: Lifecycle FSM state
        payment_status: Payment FSM state
        total_amount: Sum of line items, fixed at creation
        amount_paid_with_charges: Amount actually captured
        paid_at: First time payment_status became paid
        withdrawn: Whether the service charge was settled in a batch
        withdrawal_batch: Batch that settled this order
        is_eligible_for_withdrawal: Cached eligibility
        payment_*: Snapshot of the last payment attempt
    """

    objects = OrderQuerySet.as_manager()

    # ==========================================================================
    # Identity & Ownership
    # ==========================================================================

    order_number = models.CharField(
        max_length=40,
        unique=True,
        default=generate_order_number,
        editable=False,
        help_text="Public order number (ORD-<timestamp>-<random>)",
    )

    restaurant = models.ForeignKey(
        "restaurants.Restaurant",
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Restaurant this order belongs to",
    )

    table = models.ForeignKey(
        "restaurants.Table",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Table the order was placed from, if any",
    )

    # ==========================================================================
    # Customer
    # ==========================================================================

    order_type = models.CharField(
        max_length=20,
        choices=OrderType.choices,
        default=OrderType.DINE_IN,
        help_text="Dine-in, takeaway or delivery",
    )

    customer_name = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Customer name as given at ordering time",
    )

    customer_phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Customer phone number",
    )

    customer_email = models.EmailField(
        blank=True,
        default="",
        help_text="Customer email address",
    )

    customer_notes = models.TextField(
        blank=True,
        default="",
        help_text="Free-form notes from the customer",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.PENDING,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
        help_text="Lifecycle status (managed by FSM)",
    )

    payment_status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Payment status (managed by FSM)",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Sum of line item price x quantity, fixed at creation",
    )

    amount_paid_with_charges = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount captured from the customer, including service charges",
    )

    # ==========================================================================
    # Payment Snapshot
    # ==========================================================================

    payment_method = models.CharField(
        max_length=32,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
        db_index=True,
        help_text="Payment method chosen by the customer or reported by the provider",
    )

    payment_transaction_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Provider transaction id of the last payment attempt",
    )

    payment_phone_number = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Mobile-money number that paid",
    )

    payment_captured_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount reported by the provider for the last attempt",
    )

    payment_provider_status = models.CharField(
        max_length=20,
        choices=ProviderPaymentStatus.choices,
        blank=True,
        default="",
        help_text="Status of the last payment attempt",
    )

    payment_provider = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Provider or actor that recorded the payment",
    )

    payment_currency = models.CharField(
        max_length=3,
        default="XAF",
        help_text="ISO 4217 currency code",
    )

    payment_recorded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Provider timestamp of the last payment attempt",
    )

    payment_notes = models.TextField(
        blank=True,
        default="",
        help_text="Failure reasons and staff notes about the payment",
    )

    payment_metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Provider metadata for the last payment attempt",
    )

    # ==========================================================================
    # Withdrawal
    # ==========================================================================

    withdrawn = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the service charge was settled in a withdrawal",
    )

    withdrawal_batch = models.ForeignKey(
        "payments.PaymentWithdrawal",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Withdrawal batch that settled this order",
    )

    is_eligible_for_withdrawal = models.BooleanField(
        default=False,
        help_text="Paid by mobile money with a positive service charge",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order first became paid",
    )

    confirmed_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        indexes = [
            models.Index(fields=["restaurant", "status"], name="order_restaurant_status_idx"),
            models.Index(
                fields=["restaurant", "payment_status", "withdrawn", "created_at"],
                name="order_withdrawal_lookup_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="order_total_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid_with_charges__gte=0)
                | models.Q(amount_paid_with_charges__isnull=True),
                name="order_paid_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.order_number}, {self.status}, {self.payment_status})"

    def save(self, *args, **kwargs):
        if self.amount_paid_with_charges is None and self.total_amount is not None:
            self.amount_paid_with_charges = self.total_amount
        self.is_eligible_for_withdrawal = self.compute_eligibility()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = list(
                {*update_fields, "is_eligible_for_withdrawal", "updated_at"}
            )
        super().save(*args, **kwargs)

    # ==========================================================================
    # Derived Financials
    # ==========================================================================

    @property
    def service_charge(self) -> Decimal:
        """Captured amount above the order total (negative if underpaid)."""
        paid = (
            self.amount_paid_with_charges
            if self.amount_paid_with_charges is not None
            else self.total_amount
        )
        return Decimal(paid) - Decimal(self.total_amount)

    @property
    def is_mobile_money(self) -> bool:
        return self.payment_method in PaymentMethod.mobile_money()

    def compute_eligibility(self) -> bool:
        return (
            self.payment_status == PaymentStatus.PAID
            and self.is_mobile_money
            and self.service_charge > 0
        )

    # ==========================================================================
    # Lifecycle Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=sources_for(OrderStatus.CONFIRMED),
        target=OrderStatus.CONFIRMED,
    )
    def confirm(self):
        self.confirmed_at = timezone.now()

    @transition(
        field=status,
        source=sources_for(OrderStatus.PREPARING),
        target=OrderStatus.PREPARING,
    )
    def start_preparing(self):
        pass

    @transition(
        field=status,
        source=sources_for(OrderStatus.READY),
        target=OrderStatus.READY,
    )
    def mark_ready(self):
        pass

    @transition(
        field=status,
        source=sources_for(OrderStatus.SERVED),
        target=OrderStatus.SERVED,
    )
    def serve(self):
        self.served_at = timezone.now()

    @transition(
        field=status,
        source=sources_for(OrderStatus.COMPLETED),
        target=OrderStatus.COMPLETED,
    )
    def complete(self):
        now = timezone.now()
        self.completed_at = now
        if self.served_at is None:
            self.served_at = now

    @transition(
        field=status,
        source=sources_for(OrderStatus.CANCELLED),
        target=OrderStatus.CANCELLED,
    )
    def cancel(self):
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=[str(s) for s, targets in ORDER_STATUS_REGRESSIONS.items() if targets],
        target=RETURN_VALUE(
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
        ),
    )
    def revert_to(self, target: str) -> str:
        """
        Staff override moving the order back to an earlier open status.

        OrderService validates ``target`` against the regression table before
        calling this.
        """
        return target

    # ==========================================================================
    # Payment Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=payment_status,
        source=sources_for(PaymentStatus.PAID, PAYMENT_STATUS_TRANSITIONS),
        target=PaymentStatus.PAID,
    )
    def mark_paid(self):
        """
        Transition: PENDING -> PAID

        ``paid_at`` is only ever written here, and only when empty.
        """
        if self.paid_at is None:
            self.paid_at = timezone.now()

    @transition(
        field=payment_status,
        source=sources_for(PaymentStatus.REFUNDED, PAYMENT_STATUS_TRANSITIONS),
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        pass
