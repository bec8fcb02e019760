"""
Webhook event handlers for Nkwa Pay notifications.

This module provides a handler registry and the payment-event handler that
matches a notification to an order and applies it through OrderService.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("disbursement")
    def handle_disbursement(webhook_event: WebhookEvent, event: ProviderEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
    result.data["processed"]  # False for orphaned or rejected events

Status table (provider -> order):
    success, completed, paid  -> paid
    failed, failure           -> failed (payment stays pending, note recorded)
    pending, anything else    -> pending
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable

from django.utils.dateparse import parse_datetime

from core.exceptions import BaseApplicationError, ValidationError
from core.services import ServiceResult
from orders.models import Order
from orders.services import OrderService
from orders.state_machines import PaymentMethod, PaymentOutcome
from payments.constants import PROVIDER_CONFIG

if TYPE_CHECKING:
    from payments.models import WebhookEvent


logger = logging.getLogger(__name__)

PROVIDER_NAME = PROVIDER_CONFIG.NAME

PROVIDER_STATUS_OUTCOMES: dict[str, str] = {
    "success": PaymentOutcome.PAID,
    "completed": PaymentOutcome.PAID,
    "paid": PaymentOutcome.PAID,
    "failed": PaymentOutcome.FAILED,
    "failure": PaymentOutcome.FAILED,
    "pending": PaymentOutcome.PENDING,
}

# Payload keys naming the mobile network, in lookup order
OPERATOR_KEYS = ("telecommunication", "operator", "provider", "network")

OPERATOR_METHODS: dict[str, str] = {
    "mtn": PaymentMethod.MTN_MOMO,
    "orange": PaymentMethod.ORANGE_MONEY,
}


def map_provider_status(status: str | None) -> str:
    """Map a provider status string to a PaymentOutcome; unknown -> pending."""
    return PROVIDER_STATUS_OUTCOMES.get((status or "").strip().lower(), PaymentOutcome.PENDING)


# =============================================================================
# Parsed Event
# =============================================================================


@dataclass
class ProviderEvent:
    """Fields of a provider notification that the handlers use."""

    id: str
    event_type: str
    status: str
    reference: str
    amount: Decimal | None
    phone_number: str
    operator: str
    failure_reason: str
    occurred_at: datetime | None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ProviderEvent:
        """
        Raises:
            ValidationError: ``amount`` is present but not a number
        """
        amount = payload.get("amount")
        if amount is not None and amount != "":
            try:
                amount = Decimal(str(amount))
            except (InvalidOperation, ValueError) as e:
                raise ValidationError(
                    "Event amount is not a number",
                    error_code="INVALID_EVENT_AMOUNT",
                    details={"amount": str(amount)},
                ) from e
        else:
            amount = None

        operator = ""
        for key in OPERATOR_KEYS:
            if payload.get(key):
                operator = str(payload[key])
                break

        occurred_at = None
        for key in ("updatedAt", "createdAt", "timestamp"):
            if isinstance(payload.get(key), str):
                occurred_at = parse_datetime(payload[key])
                if occurred_at is not None:
                    break

        return cls(
            id=str(payload.get("id") or ""),
            event_type=str(payload.get("type") or payload.get("paymentType") or ""),
            status=str(payload.get("status") or ""),
            reference=str(payload.get("reference") or ""),
            amount=amount,
            phone_number=str(payload.get("phoneNumber") or ""),
            operator=operator,
            failure_reason=str(payload.get("failureReason") or payload.get("message") or ""),
            occurred_at=occurred_at,
        )

    @property
    def outcome(self) -> str:
        return map_provider_status(self.status)

    def payment_method_for(self, order: Order) -> str:
        """Operator named by the event, else the order's mobile-money method, else MTN."""
        operator = self.operator.lower()
        for needle, method in OPERATOR_METHODS.items():
            if needle in operator:
                return method
        if order.payment_method in PaymentMethod.mobile_money():
            return order.payment_method
        return PaymentMethod.MTN_MOMO


# =============================================================================
# Handler Registry
# =============================================================================


WebhookHandler = Callable[["WebhookEvent", ProviderEvent], ServiceResult]

# Maps provider event types to handler functions
WEBHOOK_HANDLERS: dict[str, WebhookHandler] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook handler for one or more event types.

    The empty string registers the handler used for events without a type.
    """

    def decorator(func: WebhookHandler) -> WebhookHandler:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type!r}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a verified webhook event to its handler.

    Unknown event types go to the payment handler: every notification the
    provider sends to this endpoint concerns a payment.

    Domain errors mark the event FAILED and are returned as a failure result;
    unexpected errors mark it FAILED and propagate.
    """
    log_extra = {"event_id": webhook_event.provider_event_id, "webhook_event_id": str(webhook_event.id)}
    try:
        event = ProviderEvent.from_payload(webhook_event.payload)
        handler = WEBHOOK_HANDLERS.get(event.event_type.lower(), handle_payment_event)
        logger.info(f"Dispatching {event.event_type or 'payment'} event", extra=log_extra)
        return handler(webhook_event, event)
    except BaseApplicationError as e:
        logger.warning(f"Webhook event rejected: {e.message}", extra=log_extra)
        webhook_event.mark_failed(e.message)
        webhook_event.save()
        return ServiceResult.from_exception(e)
    except Exception as e:
        logger.exception("Unexpected error handling webhook event", extra=log_extra)
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save()
        raise


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("", "payment", "collection", "collect")
def handle_payment_event(webhook_event: WebhookEvent, event: ProviderEvent) -> ServiceResult:
    """
    Match the event to an order and converge its payment state.

    Matching: order number == reference, then payment_transaction_id == id.
    No match: the event is stored as ORPHANED and acknowledged.
    """
    order = Order.objects.match_provider_event(event.reference, event.id)
    if order is None:
        logger.warning(
            "Orphaned webhook event: no order for reference or transaction id",
            extra={
                "event_id": event.id,
                "reference": event.reference,
                "amount": str(event.amount),
                "status": event.status,
            },
        )
        webhook_event.mark_orphaned()
        webhook_event.save()
        return ServiceResult.success({"processed": False, "orphaned": True})

    order = OrderService.apply_payment_event(
        order,
        captured_amount=event.amount,
        method=event.payment_method_for(order),
        external_tx_id=event.id,
        timestamp=event.occurred_at,
        outcome=event.outcome,
        phone_number=event.phone_number,
        provider=PROVIDER_NAME,
        metadata={"provider_status": event.status},
        note=event.failure_reason,
    )

    webhook_event.mark_processed(order)
    webhook_event.save()
    logger.info(
        f"Webhook event applied to order {order.order_number}",
        extra={
            "event_id": event.id,
            "order_id": str(order.id),
            "restaurant_id": str(order.restaurant_id),
            "payment_status": order.payment_status,
        },
    )
    return ServiceResult.success(
        {"processed": True, "order_id": str(order.id), "payment_status": order.payment_status}
    )
