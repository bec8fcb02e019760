"""
PaymentWithdrawal model: one authorized settlement of service charges.

A batch gathers a restaurant's eligible mobile-money orders for one UTC day
and records the financial summary and who authorized it. Orders point at
their batch through ``Order.withdrawal_batch``.

Usage:
    from payments.services import WithdrawalService

    batch = WithdrawalService.authorize_and_settle(
        restaurant=restaurant,
        orders=orders,
        security_code="1234",
        authorized_by=user,
        role=StaffRole.MANAGER,
        payment_method=WithdrawalMethod.MTN,
        withdrawal_date=date(2026, 3, 1),
    )
    batch.orders.all()   # orders settled by this batch

Note:
    The security code itself is never stored on the batch, only the outcome
    of the check.
"""

from __future__ import annotations

import secrets

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.exceptions import ConflictError
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import (
    SecurityCheckOutcome,
    WithdrawalMethod,
    WithdrawalStatus,
)
from restaurants.models import StaffRole

WITHDRAWAL_NUMBER_PREFIX = "WDL"


def generate_withdrawal_number() -> str:
    """Return ``WDL-<epoch milliseconds>-<0..999>``."""
    millis = int(timezone.now().timestamp() * 1000)
    return f"{WITHDRAWAL_NUMBER_PREFIX}-{millis}-{secrets.randbelow(1000)}"


class PaymentWithdrawal(UUIDPrimaryKeyMixin, BaseModel):
    """
    A withdrawal batch.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING/PROCESSING -> FAILED      provider rejected the payout
        PENDING/PROCESSING -> CANCELLED   staff action from the admin

    Settlement moves a batch to PROCESSING and, unless it is paid out through
    the provider, straight on to COMPLETED. FAILED and CANCELLED batches have
    released their orders (see WithdrawalService.disburse and .cancel).

    Fields:
        withdrawal_number: Public identifier (WDL-<timestamp>-<random>)
        restaurant: Owning tenant
        payment_method: Mobile-money class settled (MTN, ORANGE)
        withdrawal_date: UTC day the orders were selected from
        withdrawal_amount: Sum of captured amounts
        customer_charges: Sum of service charges
        withdrawal_fee: fee_percent of withdrawal_amount, borne by the platform
        net_profit: customer_charges - withdrawal_fee
        authorized_*: Who approved the batch and in which role
    """

    # ==========================================================================
    # Identity & Ownership
    # ==========================================================================

    withdrawal_number = models.CharField(
        max_length=40,
        unique=True,
        default=generate_withdrawal_number,
        editable=False,
        help_text="Public withdrawal number (WDL-<timestamp>-<random>)",
    )

    restaurant = models.ForeignKey(
        "restaurants.Restaurant",
        on_delete=models.PROTECT,
        related_name="withdrawals",
        help_text="Restaurant whose charges are withdrawn",
    )

    payment_method = models.CharField(
        max_length=10,
        choices=WithdrawalMethod.choices,
        help_text="Mobile-money class settled by this batch",
    )

    withdrawal_date = models.DateField(
        help_text="UTC day the orders were selected from",
    )

    order_count = models.PositiveIntegerField(default=0)

    payment_phone_number = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Restaurant mobile-money number receiving the funds",
    )

    transaction_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Provider disbursement id, when paid out through the provider",
    )

    # ==========================================================================
    # Financial Summary
    # ==========================================================================

    withdrawal_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Sum of amount_paid_with_charges over the batch",
    )

    customer_charges = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Sum of service charges over the batch",
    )

    withdrawal_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Platform fee on withdrawal_amount",
    )

    fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        help_text="Fee rate applied, in percent",
    )

    net_profit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="customer_charges - withdrawal_fee",
    )

    # ==========================================================================
    # Authorization
    # ==========================================================================

    authorized_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="authorized_withdrawals",
    )

    authorized_role = models.CharField(
        max_length=20,
        choices=StaffRole.choices,
        default=StaffRole.MANAGER,
    )

    custom_role = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Role description when authorized_role is 'other'",
    )

    security_check_outcome = models.CharField(
        max_length=10,
        choices=SecurityCheckOutcome.choices,
    )

    authorized_at = models.DateTimeField(default=timezone.now)

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=WithdrawalStatus.PENDING,
        choices=WithdrawalStatus.choices,
        db_index=True,
        protected=True,
        help_text="Batch status (managed by FSM)",
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    failure_reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Withdrawal"
        verbose_name_plural = "Payment Withdrawals"
        indexes = [
            models.Index(fields=["restaurant", "withdrawal_date"], name="withdrawal_restaurant_day_idx"),
            models.Index(fields=["restaurant", "payment_method"], name="withdrawal_restaurant_meth_idx"),
            models.Index(
                fields=["restaurant", "status", "withdrawal_date"],
                name="withdrawal_status_day_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(withdrawal_amount__gte=0)
                & models.Q(customer_charges__gte=0)
                & models.Q(withdrawal_fee__gte=0),
                name="withdrawal_amounts_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentWithdrawal({self.withdrawal_number}, {self.status})"

    def save(self, *args, **kwargs):
        if not self._state.adding and self.pk:
            persisted = (
                type(self).objects.filter(pk=self.pk).values_list("status", flat=True).first()
            )
            if persisted == WithdrawalStatus.COMPLETED:
                raise ConflictError(
                    f"Withdrawal {self.withdrawal_number} is completed and cannot change",
                    error_code="WITHDRAWAL_COMPLETED",
                    details={"withdrawal_id": str(self.pk)},
                )
        super().save(*args, **kwargs)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.PROCESSING,
    )
    def start_processing(self):
        """Transition: PENDING -> PROCESSING"""
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=WithdrawalStatus.PROCESSING,
        target=WithdrawalStatus.COMPLETED,
    )
    def complete(self):
        """Transition: PROCESSING -> COMPLETED"""
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        target=WithdrawalStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        Transition: PENDING/PROCESSING -> FAILED

        Args:
            reason: Optional failure reason for debugging
        """
        self.failure_reason = reason

    @transition(
        field=status,
        source=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        target=WithdrawalStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """Transition: PENDING/PROCESSING -> CANCELLED"""
        if reason:
            self.notes = f"{self.notes}\n{reason}".strip()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_complete(self) -> bool:
        return self.status == WithdrawalStatus.COMPLETED
