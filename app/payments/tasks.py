"""
Celery tasks for payment processing.

This module provides async tasks for:
- Reprocessing orphaned or failed webhook events (staff-triggered)
- Periodic cleanup of old processed webhook events

Usage:
    from payments.tasks import reprocess_webhook_event

    # Requeue an orphaned event after fixing the order reference
    reprocess_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.utils import timezone

from payments.constants import WEBHOOK_CONFIG
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


MAX_REPROCESS_RETRIES = 3


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_REPROCESS_RETRIES},
    acks_late=True,
)
def reprocess_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Apply a stored orphaned or failed webhook event again.

    Only events whose signature was valid are reprocessed. Applying is
    convergent, so running this twice is harmless.

    Returns:
        Dict with the processing status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)
    log_extra = {"webhook_event_id": str(webhook_event_id)}

    webhook_event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error("WebhookEvent not found", extra=log_extra)
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if not webhook_event.can_reprocess:
        logger.info(
            f"WebhookEvent in status {webhook_event.status} is not reprocessable, skipping",
            extra=log_extra,
        )
        return {"status": "skipped", "webhook_event_id": str(webhook_event_id)}

    result = dispatch_webhook(webhook_event)
    webhook_event.refresh_from_db(fields=["status"])
    logger.info(
        f"Reprocessed webhook event: {webhook_event.status}",
        extra={**log_extra, "event_id": webhook_event.provider_event_id},
    )
    return {
        "status": webhook_event.status,
        "webhook_event_id": str(webhook_event_id),
        "error": result.error,
    }


@shared_task
def cleanup_webhook_events(days: int = WEBHOOK_CONFIG.RETENTION_DAYS) -> dict:
    """
    Periodic task to delete old processed webhook events.

    Orphaned, rejected and failed events are kept for investigation.

    Returns:
        Dict with count of events deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count = 0
    while True:
        batch_ids = list(
            WebhookEvent.objects.filter(
                status=WebhookEventStatus.PROCESSED,
                processed_at__lt=cutoff,
            ).values_list("id", flat=True)[: WEBHOOK_CONFIG.CLEANUP_BATCH_SIZE]
        )
        if not batch_ids:
            break
        deleted, _ = WebhookEvent.objects.filter(id__in=batch_ids).delete()
        deleted_count += deleted

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )

    return {"deleted_count": deleted_count}
