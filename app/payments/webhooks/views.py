"""
Webhook endpoint view for Nkwa Pay.

The view:
1. Parses the raw body (400 on malformed JSON)
2. Verifies the RSA signature and timestamp
3. Records the delivery as a WebhookEvent
4. Applies it synchronously and acknowledges

Usage:
    # In urls.py
    from payments.webhooks.views import nkwa_webhook

    urlpatterns = [
        path("webhooks/nkwa/", nkwa_webhook, name="nkwa_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.constants import PROVIDER_CONFIG
from payments.exceptions import InvalidSignature
from payments.models import WebhookEvent
from payments.webhooks.handlers import dispatch_webhook
from payments.webhooks.signature import verify_signature


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def nkwa_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and apply a Nkwa Pay notification.

    Returns:
        JsonResponse with status:
        - 200: ``{"received": true, "processed": <bool>, "eventId": <id>}``;
          processed is false for orphaned, rejected or failed events
        - 400: Empty or malformed body
        - 401: Invalid signature, when PAYMENT_WEBHOOK_ACK_INVALID_SIGNATURE is off
        - 500: Unexpected error (the provider will redeliver)

    Security:
    - Invalid signatures never reach the handlers
    - CSRF exemption required for external webhooks
    - Only POST requests accepted
    """
    raw_body = request.body
    if not raw_body:
        logger.warning("Webhook received without a body")
        return JsonResponse({"error": "No request body"}, status=400)

    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Webhook body is not valid JSON", extra={"error": str(e)})
        return JsonResponse({"error": "Invalid JSON body", "detail": str(e)}, status=400)
    if not isinstance(payload, dict):
        return JsonResponse({"error": "Invalid event"}, status=400)

    event_id = str(payload.get("id") or "")
    record = {
        "event_type": str(payload.get("type") or ""),
        "provider_status": str(payload.get("status") or ""),
        "reference": str(payload.get("reference") or ""),
    }

    try:
        verify_signature(
            raw_body,
            request.headers.get(PROVIDER_CONFIG.SIGNATURE_HEADER, ""),
            request.headers.get(PROVIDER_CONFIG.TIMESTAMP_HEADER, ""),
        )
    except InvalidSignature as e:
        logger.warning(
            f"Webhook signature verification failed: {e.message}",
            extra={"event_id": event_id, "details": e.details},
        )
        rejected = WebhookEvent.record_delivery(
            event_id, payload, signature_valid=False, **record
        )
        rejected.error_message = e.message
        rejected.save(update_fields=["error_message", "updated_at"])
        if settings.PAYMENT_WEBHOOK_ACK_INVALID_SIGNATURE:
            return JsonResponse({"received": True, "processed": False, "eventId": event_id})
        return JsonResponse(e.to_dict(), status=401)

    logger.info(
        "Received Nkwa Pay webhook",
        extra={"event_id": event_id, "status": record["provider_status"]},
    )

    try:
        webhook_event = WebhookEvent.record_delivery(
            event_id, payload, signature_valid=True, **record
        )
        result = dispatch_webhook(webhook_event)
    except Exception:
        logger.exception("Webhook processing error", extra={"event_id": event_id})
        return JsonResponse({"error": "Server error"}, status=500)

    processed = bool(result.success and result.data and result.data.get("processed"))
    return JsonResponse({"received": True, "processed": processed, "eventId": event_id})
