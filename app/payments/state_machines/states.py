"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

PaymentWithdrawal States:
    pending → processing → completed
    pending/processing → failed
    pending/processing → cancelled

WebhookEvent States (plain status, not an FSM):
    pending → processed | orphaned | rejected | failed
    orphaned/failed → processed (staff reprocessing)
"""

from django.db import models


class WithdrawalStatus(models.TextChoices):
    """
    States for a withdrawal batch.

    Terminal states: COMPLETED, FAILED, CANCELLED
    A completed batch is immutable.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class WithdrawalMethod(models.TextChoices):
    """
    Mobile-money class a batch settles.

    ``match_pattern`` is matched case-insensitively against
    ``Order.payment_method`` when selecting eligible orders.
    """

    MTN = "MTN", "MTN MoMo"
    ORANGE = "ORANGE", "Orange Money"

    @property
    def match_pattern(self) -> str:
        return {"MTN": "mtn", "ORANGE": "orange"}[self.value]


class SecurityCheckOutcome(models.TextChoices):
    """Result of a Security Gate check."""

    APPROVED = "approved", "Approved"
    DENIED = "denied", "Denied"
    LOCKED = "locked", "Locked"


class SecuritySettingType(models.TextChoices):
    WITHDRAWAL_SECURITY_CODE = "withdrawal_security_code", "Withdrawal security code"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status of a received provider notification.

    ORPHANED: signature valid but no order matched; acknowledged, not retried
    REJECTED: signature invalid; no order touched
    FAILED: unexpected error while applying; eligible for reprocessing
    """

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    ORPHANED = "orphaned", "Orphaned"
    REJECTED = "rejected", "Rejected"
    FAILED = "failed", "Failed"
