"""
WebhookEvent model for payment provider notifications.

Every delivery from the provider is recorded, whatever its outcome, for
audit and staff reprocessing. Deliveries are not deduplicated by event id:
order state converges instead, so a redelivered event only bumps
``delivery_count`` on the stored row.

Usage:
    from payments.models import WebhookEvent

    event = WebhookEvent.record_delivery(
        provider_event_id="pay_123",
        event_type="collection",
        payload=payload,
        signature_valid=True,
    )
    ...
    event.mark_processed(order)
    event.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    One provider notification as received.

    Processing Flow:
        1. Webhook arrives, signature verified
        2. Row fetched or created by provider_event_id (delivery_count += 1)
        3. Order matched by reference, then by transaction id
        4. PROCESSED (applied), ORPHANED (no order) or FAILED (error)
        5. Invalid signatures are stored as REJECTED and never applied

    Fields:
        provider_event_id: Provider payment id (indexed, not unique)
        event_type: Provider event type, if any
        provider_status: Raw status string from the payload
        reference: Merchant reference (our order number)
        payload: Parsed JSON body
        signature_valid: Result of signature verification
        order: Order the event was applied to
        delivery_count: Number of deliveries received for this event id
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    provider_event_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Provider payment/event id",
    )

    event_type = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Provider event type (e.g. 'collection')",
    )

    provider_status = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Status string as sent by the provider",
    )

    reference = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Merchant reference (order number)",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(default=dict, help_text="Parsed webhook body")

    signature_valid = models.BooleanField(default=False)

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="webhook_events",
        help_text="Order this event was applied to",
    )

    delivery_count = models.PositiveIntegerField(default=1)

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(blank=True, default="")

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["provider_event_id", "status"], name="webhook_event_status_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider_event_id or '-'}, {self.status})"

    @classmethod
    def record_delivery(
        cls,
        provider_event_id: str,
        payload: dict,
        *,
        event_type: str = "",
        provider_status: str = "",
        reference: str = "",
        signature_valid: bool,
    ) -> WebhookEvent:
        """
        Store a delivery, reusing the latest row for a known valid event id.

        Rejected deliveries always get their own row; they are not trusted
        to name an existing event.
        """
        existing = None
        if signature_valid and provider_event_id:
            existing = (
                cls.objects.filter(provider_event_id=provider_event_id, signature_valid=True)
                .order_by("-created_at")
                .first()
            )
        if existing is not None:
            cls.objects.filter(pk=existing.pk).update(
                delivery_count=F("delivery_count") + 1,
                payload=payload,
                provider_status=provider_status,
                updated_at=timezone.now(),
            )
            existing.refresh_from_db()
            return existing

        return cls.objects.create(
            provider_event_id=provider_event_id,
            event_type=event_type,
            provider_status=provider_status,
            reference=reference,
            payload=payload,
            signature_valid=signature_valid,
            status=(
                WebhookEventStatus.PENDING if signature_valid else WebhookEventStatus.REJECTED
            ),
        )

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def can_reprocess(self) -> bool:
        return self.signature_valid and self.status in (
            WebhookEventStatus.ORPHANED,
            WebhookEventStatus.FAILED,
        )

    # ==========================================================================
    # Helper Methods (do not save; caller must save)
    # ==========================================================================

    def mark_processed(self, order) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.order = order
        self.processed_at = timezone.now()
        self.error_message = ""

    def mark_orphaned(self) -> None:
        self.status = WebhookEventStatus.ORPHANED
        self.processed_at = timezone.now()

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
