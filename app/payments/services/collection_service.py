"""
Collection service: ask the provider to charge a customer for an order.

The order number is sent as the payment reference, and the provider payment
id is stored as the order's transaction id, so the later notification can be
matched either way.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.exceptions import ConflictError
from core.services import BaseService, ServiceResult
from orders.models import Order
from orders.services import OrderService
from orders.state_machines import PaymentMethod, PaymentOutcome, PaymentStatus
from payments.adapters import NkwaPayAdapter
from payments.constants import PROVIDER_CONFIG
from payments.exceptions import ProviderError

if TYPE_CHECKING:
    from payments.adapters import ProviderPaymentResult


class CollectionService(BaseService):
    @classmethod
    def collect(
        cls,
        order: Order,
        phone_number: str,
        amount: Decimal | None = None,
        method: str = "",
    ) -> ServiceResult[ProviderPaymentResult]:
        """
        Start a mobile-money collection for ``order``.

        ``amount`` defaults to the order total; customers may be asked for
        more to cover service charges.

        Returns:
            ServiceResult with the provider result, or a failure carrying the
            provider error code

        Raises:
            ConflictError: Order is not awaiting payment
        """
        if order.payment_status != PaymentStatus.PENDING:
            raise ConflictError(
                f"Order {order.order_number} is already {order.payment_status}",
                error_code="ORDER_NOT_PAYABLE",
                details={"order_id": str(order.id), "payment_status": order.payment_status},
            )

        amount = amount if amount is not None else order.total_amount
        try:
            result = NkwaPayAdapter.collect(
                amount=amount,
                phone_number=phone_number,
                reference=order.order_number,
            )
        except ProviderError as e:
            return cls.handle_exception(e, f"collect for order {order.order_number}")

        if not method:
            method = (
                order.payment_method
                if order.payment_method in PaymentMethod.mobile_money()
                else PaymentMethod.MTN_MOMO
            )
        OrderService.apply_payment_event(
            order,
            captured_amount=None,
            method=method,
            external_tx_id=result.id,
            timestamp=timezone.now(),
            outcome=PaymentOutcome.PENDING,
            phone_number=phone_number,
            provider=PROVIDER_CONFIG.NAME,
            metadata={"requested_amount": str(amount)},
        )
        cls.get_logger().info(
            f"Collection requested for order {order.order_number}",
            extra={"order_id": str(order.id), "transaction_id": result.id},
        )
        return ServiceResult.success(result)

    @classmethod
    def payment_status(cls, transaction_id: str, refresh: bool = False) -> dict[str, Any]:
        """
        Stored payment state for a provider transaction id.

        With ``refresh`` the provider is asked for its current view of a
        matched payment as well (``remote_status``); a failed lookup is
        reported as ``remote_error`` and never hides the stored state.
        """
        order = Order.objects.filter(payment_transaction_id=transaction_id).first()
        if order is None:
            return {
                "transaction_id": transaction_id,
                "status": "unknown",
                "message": "Transaction not found in system",
                "checked_at": timezone.now(),
            }
        payload = {
            "transaction_id": transaction_id,
            "order_id": order.id,
            "restaurant_id": order.restaurant_id,
            "order_number": order.order_number,
            "payment_status": order.payment_status,
            "provider_status": order.payment_provider_status,
            "amount": order.total_amount,
            "amount_paid": order.amount_paid_with_charges,
            "service_charge": order.service_charge,
            "checked_at": timezone.now(),
        }
        if refresh:
            payload.update(cls._remote_status(transaction_id))
        return payload

    @classmethod
    def _remote_status(cls, transaction_id: str) -> dict[str, Any]:
        try:
            remote = NkwaPayAdapter.get_payment(transaction_id)
        except ProviderError as e:
            cls.get_logger().warning(
                f"Provider lookup failed for {transaction_id}: {e.message}",
                extra={"transaction_id": transaction_id, "error_code": e.error_code},
            )
            return {"remote_status": None, "remote_error": e.error_code}
        return {"remote_status": remote.status}
