"""
State enums for order models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Order lifecycle (status):
    pending → confirmed → preparing → ready → served → completed
    any non-terminal → cancelled
    forward moves may skip steps (pending → ready)

Payment (payment_status):
    pending → paid → refunded
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    Lifecycle of an order in the kitchen and on the floor.

    Terminal states: COMPLETED, CANCELLED
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    SERVED = "served", "Served"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    """
    Payment axis of an order, independent of its lifecycle.

    A failed provider attempt leaves the order PENDING; the failure is kept in
    the payment snapshot (provider status and notes) instead.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


class ProviderPaymentStatus(models.TextChoices):
    """Last status reported for the payment attempt itself."""

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class PaymentOutcome(models.TextChoices):
    """
    Internal outcome a provider event maps to.

    Used by the webhook processor's status table and by manual staff
    overrides.
    """

    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    PENDING = "pending", "Pending"


class PaymentMethod(models.TextChoices):
    """
    How the customer paid.

    Only mobile-money methods can produce withdrawable service charges.
    """

    MTN_MOMO = "MTN MoMo", "MTN MoMo"
    ORANGE_MONEY = "Orange Money", "Orange Money"
    PAY_AT_COUNTER = "Pay at Counter", "Pay at Counter"
    CASH = "cash", "Cash"
    CARD = "card", "Card"
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    WALLET = "wallet", "Wallet"
    OTHER = "other", "Other"

    @classmethod
    def mobile_money(cls) -> frozenset[str]:
        """Methods whose captured charges are eligible for withdrawal."""
        return frozenset({cls.MTN_MOMO, cls.ORANGE_MONEY})


class OrderType(models.TextChoices):
    DINE_IN = "dine-in", "Dine-in"
    TAKEAWAY = "takeaway", "Takeaway"
    DELIVERY = "delivery", "Delivery"
