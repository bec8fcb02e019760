"""
Withdrawal Engine: select eligible orders and settle them in one batch.

Settlement flow (authorize_and_settle):
    1. Reject an empty selection
    2. Security Gate check, committed on its own
    3. Selection checked against tenant, method and withdrawal_date
    4. One transaction:
       a. batch created PENDING
       b. conditional update withdrawn=False -> True on the selected orders
       c. row count mismatch -> AlreadyWithdrawn, whole transaction rolled back
       d. batch PENDING -> PROCESSING, then COMPLETED unless paid out
    5. order_updated events emitted after commit
    6. With ``disburse=True``, the payout step below

Payout step (disburse):
    The provider is called outside any transaction, then the batch is
    completed with the provider's disbursement id. A transient provider error
    leaves the batch PROCESSING so the payout can be retried; a rejected
    payout fails the batch and releases its orders.

The conditional update is what makes concurrent settlements safe: an order
can only be flipped by the first batch that reaches it.

Usage:
    from payments.services import WithdrawalService

    orders = WithdrawalService.list_eligible_orders(restaurant, date(2026, 3, 1), "mtn")
    batch = WithdrawalService.authorize_and_settle(
        restaurant=restaurant,
        orders=orders,
        security_code="1234",
        authorized_by=request.user,
        role=StaffRole.MANAGER,
        payment_method=WithdrawalMethod.MTN,
        withdrawal_date=date(2026, 3, 1),
    )
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F, Sum
from django.utils import timezone
from django_fsm import can_proceed

from core.exceptions import ConflictError, ValidationError
from core.locks import lock_for_update
from core.services import BaseService
from orders.models import Order
from orders.signals import OrderEventType, emit_order_event
from orders.state_machines import PaymentStatus
from payments.adapters import NkwaPayAdapter
from payments.exceptions import (
    AlreadyWithdrawn,
    EmptySelection,
    ProviderError,
    SecurityCodeDenied,
    SecurityGateLocked,
)
from payments.models import PaymentWithdrawal
from payments.services.security_gate import SecurityGate
from payments.state_machines import (
    SecurityCheckOutcome,
    WithdrawalMethod,
    WithdrawalStatus,
)
from restaurants.models import StaffRole

if TYPE_CHECKING:
    from collections.abc import Iterable

    from restaurants.models import Restaurant

CENT = Decimal("0.01")


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the half-open UTC range ``[day 00:00, next day 00:00)``."""
    start = datetime.combine(day, time.min, tzinfo=dt_timezone.utc)
    return start, start + timedelta(days=1)


def compute_fee(amount: Decimal, fee_percent: Decimal) -> Decimal:
    return (Decimal(amount) * Decimal(fee_percent) / Decimal(100)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )


class WithdrawalService(BaseService):
    """Lists withdrawable orders and settles them into PaymentWithdrawal batches."""

    # ==========================================================================
    # Selection
    # ==========================================================================

    @classmethod
    def eligible_queryset(cls, restaurant: Restaurant):
        return Order.objects.filter(
            restaurant=restaurant,
            payment_status=PaymentStatus.PAID,
            withdrawn=False,
            is_eligible_for_withdrawal=True,
        )

    @classmethod
    def list_eligible_orders(
        cls,
        restaurant: Restaurant,
        date_utc: date,
        method_pattern: str,
    ) -> list[Order]:
        """
        Paid, unwithdrawn, eligible orders created on ``date_utc`` whose
        payment method contains ``method_pattern`` (case-insensitive), oldest
        first.
        """
        start, end = utc_day_bounds(date_utc)
        return list(
            cls.eligible_queryset(restaurant)
            .filter(
                payment_method__icontains=method_pattern,
                created_at__gte=start,
                created_at__lt=end,
            )
            .order_by("created_at")
        )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    @classmethod
    def authorize_and_settle(
        cls,
        restaurant: Restaurant,
        orders: Iterable[Order],
        security_code: str,
        authorized_by,
        role: str,
        payment_method: str,
        withdrawal_date: date,
        custom_role: str = "",
        notes: str = "",
        payment_phone_number: str = "",
        disburse: bool = False,
    ) -> PaymentWithdrawal:
        """
        Authorize a withdrawal and mark its orders withdrawn, all or nothing.

        Every order must belong to ``restaurant``, match ``payment_method`` and
        have been created on ``withdrawal_date`` (UTC). With ``disburse`` the
        batch is paid out to ``payment_phone_number`` (see ``disburse``).

        Raises:
            EmptySelection: No orders given
            ValidationError: custom_role missing for role 'other', payout
                number missing, or an order outside the tenant, method or day
            SecurityCodeNotConfigured: Restaurant has no code
            SecurityCodeDenied: Wrong code
            SecurityGateLocked: Code locked (retry_after seconds)
            AlreadyWithdrawn: An order was settled concurrently or is no
                longer eligible
        """
        order_ids = list(dict.fromkeys(order.pk for order in orders))
        if not order_ids:
            raise EmptySelection("Select at least one order to withdraw")
        if role == StaffRole.OTHER and not custom_role.strip():
            raise ValidationError(
                "Specify the role when authorizing as 'other'",
                error_code="CUSTOM_ROLE_REQUIRED",
            )
        if disburse and not payment_phone_number.strip():
            raise ValidationError(
                "A mobile-money number is required to pay the withdrawal out",
                error_code="PAYOUT_PHONE_REQUIRED",
            )

        logger = cls.get_logger()
        log_extra = {"restaurant_id": str(restaurant.pk), "order_count": len(order_ids)}

        decision = SecurityGate.verify(restaurant, security_code)
        if decision.outcome == SecurityCheckOutcome.LOCKED:
            raise SecurityGateLocked(
                "Too many failed attempts; security code is locked",
                retry_after=decision.retry_after,
            )
        if decision.outcome == SecurityCheckOutcome.DENIED:
            raise SecurityCodeDenied(remaining_attempts=decision.remaining_attempts)

        fee_percent = Decimal(str(settings.WITHDRAWAL_FEE_PERCENT))

        with transaction.atomic():
            selected = list(
                Order.objects.filter(pk__in=order_ids, restaurant=restaurant).select_for_update()
            )
            if len(selected) != len(order_ids):
                raise ValidationError(
                    "Some selected orders do not belong to this restaurant",
                    error_code="ORDER_RESTAURANT_MISMATCH",
                    details={"selected": len(order_ids), "found": len(selected)},
                )
            pattern = WithdrawalMethod(payment_method).match_pattern
            mismatched = [o.order_number for o in selected if pattern not in o.payment_method.lower()]
            if mismatched:
                raise ValidationError(
                    f"Orders not paid with {payment_method}",
                    error_code="PAYMENT_METHOD_MISMATCH",
                    details={"order_numbers": mismatched},
                )
            start, end = utc_day_bounds(withdrawal_date)
            off_day = [o.order_number for o in selected if not start <= o.created_at < end]
            if off_day:
                raise ValidationError(
                    f"Orders not created on {withdrawal_date.isoformat()} (UTC)",
                    error_code="ORDER_DATE_MISMATCH",
                    details={"order_numbers": off_day},
                )

            withdrawal_amount = sum(
                (order.amount_paid_with_charges for order in selected), Decimal("0")
            )
            customer_charges = sum((order.service_charge for order in selected), Decimal("0"))
            withdrawal_fee = compute_fee(withdrawal_amount, fee_percent)

            batch = PaymentWithdrawal.objects.create(
                restaurant=restaurant,
                payment_method=payment_method,
                withdrawal_date=withdrawal_date,
                order_count=len(order_ids),
                withdrawal_amount=withdrawal_amount,
                customer_charges=customer_charges,
                withdrawal_fee=withdrawal_fee,
                fee_percent=fee_percent,
                net_profit=customer_charges - withdrawal_fee,
                authorized_by=authorized_by,
                authorized_role=role,
                custom_role=custom_role,
                security_check_outcome=decision.outcome,
                payment_phone_number=payment_phone_number,
                notes=notes,
            )

            updated = (
                cls.eligible_queryset(restaurant)
                .filter(pk__in=order_ids)
                .update(
                    withdrawn=True,
                    withdrawal_batch=batch,
                    version=F("version") + 1,
                    updated_at=timezone.now(),
                )
            )
            if updated != len(order_ids):
                logger.warning(
                    "Withdrawal aborted: selection changed concurrently",
                    extra={**log_extra, "updated": updated},
                )
                raise AlreadyWithdrawn(
                    "One or more selected orders were already withdrawn or are no "
                    "longer eligible",
                    details={"selected": len(order_ids), "available": updated},
                )

            batch.start_processing()
            batch.save()
            if not disburse:
                batch.complete()
                batch.save()

            for order in Order.objects.filter(pk__in=order_ids):
                emit_order_event(
                    order,
                    OrderEventType.ORDER_UPDATED,
                    changes={"withdrawn": True, "withdrawal_batch": str(batch.pk)},
                )

        logger.info(
            f"Withdrawal {batch.withdrawal_number} settled",
            extra={
                **log_extra,
                "withdrawal_id": str(batch.pk),
                "status": batch.status,
                "withdrawal_amount": str(withdrawal_amount),
                "net_profit": str(batch.net_profit),
            },
        )
        if disburse:
            return cls.disburse(batch)
        return batch

    @classmethod
    def disburse(cls, withdrawal: PaymentWithdrawal) -> PaymentWithdrawal:
        """
        Pay a PROCESSING batch out to its mobile-money number.

        The amount sent is ``withdrawal_amount`` and the reference is the
        withdrawal number. On success the provider id is stored in
        ``transaction_id`` and the batch completes.

        Raises:
            ConflictError: Batch is not PROCESSING
            ValidationError: Batch has no payout number
            ProviderError: Transient errors leave the batch PROCESSING;
                permanent ones fail it and release its orders first
        """
        batch = PaymentWithdrawal.objects.get(pk=withdrawal.pk)
        if batch.status != WithdrawalStatus.PROCESSING:
            raise ConflictError(
                f"Withdrawal {batch.withdrawal_number} is {batch.status}, not processing",
                error_code="WITHDRAWAL_NOT_PROCESSING",
                details={"withdrawal_id": str(batch.pk), "status": batch.status},
            )
        if not batch.payment_phone_number:
            raise ValidationError(
                "A mobile-money number is required to pay the withdrawal out",
                error_code="PAYOUT_PHONE_REQUIRED",
            )

        logger = cls.get_logger()
        log_extra = {"withdrawal_id": str(batch.pk), "restaurant_id": str(batch.restaurant_id)}

        try:
            result = NkwaPayAdapter.disburse(
                amount=batch.withdrawal_amount,
                phone_number=batch.payment_phone_number,
                reference=batch.withdrawal_number,
            )
        except ProviderError as e:
            e.details["withdrawal_id"] = str(batch.pk)
            if e.is_retryable:
                logger.warning(
                    f"Payout of {batch.withdrawal_number} not confirmed, left processing",
                    extra={**log_extra, "error_code": e.error_code},
                )
                raise
            cls._release(batch.pk, "fail", f"[{e.error_code}] {e.message}")
            raise

        with transaction.atomic():
            batch = lock_for_update(PaymentWithdrawal, batch.pk)
            batch.transaction_id = result.id
            batch.complete()
            batch.save()

        logger.info(
            f"Withdrawal {batch.withdrawal_number} paid out",
            extra={**log_extra, "transaction_id": result.id},
        )
        return batch

    @classmethod
    def cancel(cls, withdrawal: PaymentWithdrawal, reason: str = "") -> PaymentWithdrawal:
        """
        Cancel a batch that was not paid out and release its orders.

        Staff-only (admin action); for a batch left PROCESSING after a payout
        that was never confirmed.

        Raises:
            ConflictError: Batch already completed, failed or cancelled
        """
        return cls._release(withdrawal.pk, "cancel", reason)

    @classmethod
    def _release(cls, withdrawal_id, transition_name: str, reason: str) -> PaymentWithdrawal:
        """Fail or cancel a batch and make its orders withdrawable again."""
        with transaction.atomic():
            batch = lock_for_update(PaymentWithdrawal, withdrawal_id)
            close = getattr(batch, transition_name)
            if not can_proceed(close):
                raise ConflictError(
                    f"Withdrawal {batch.withdrawal_number} is {batch.status} and cannot be closed",
                    error_code="WITHDRAWAL_NOT_OPEN",
                    details={"withdrawal_id": str(batch.pk), "status": batch.status},
                )
            close(reason=reason)
            batch.save()

            order_ids = list(batch.orders.values_list("pk", flat=True))
            Order.objects.filter(pk__in=order_ids).update(
                withdrawn=False,
                withdrawal_batch=None,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            for order in Order.objects.filter(pk__in=order_ids):
                emit_order_event(
                    order,
                    OrderEventType.ORDER_UPDATED,
                    changes={"withdrawn": False, "withdrawal_batch": None},
                )

        cls.get_logger().warning(
            f"Withdrawal {batch.withdrawal_number} {batch.status}: {reason}",
            extra={"withdrawal_id": str(batch.pk), "released_orders": len(order_ids)},
        )
        return batch

    # ==========================================================================
    # Reporting
    # ==========================================================================

    @classmethod
    def get_restaurant_totals(cls, restaurant: Restaurant) -> dict[str, Any]:
        """Sums over the restaurant's completed batches."""
        totals = PaymentWithdrawal.objects.filter(
            restaurant=restaurant, status=WithdrawalStatus.COMPLETED
        ).aggregate(
            total_withdrawals=Count("id"),
            total_amount=Sum("withdrawal_amount"),
            total_charges=Sum("customer_charges"),
            total_fees=Sum("withdrawal_fee"),
            total_net_profit=Sum("net_profit"),
        )
        zero = Decimal("0.00")
        return {key: value if value is not None else zero for key, value in totals.items()}

    @classmethod
    def get_daily_summary(
        cls,
        restaurant: Restaurant,
        start: date,
        end: date,
    ) -> list[dict[str, Any]]:
        """
        Completed batch sums per withdrawal day and method, for days in
        ``[start, end]``, newest first.
        """
        rows = (
            PaymentWithdrawal.objects.filter(
                restaurant=restaurant,
                status=WithdrawalStatus.COMPLETED,
                withdrawal_date__gte=start,
                withdrawal_date__lte=end,
            )
            .values("withdrawal_date", "payment_method")
            .annotate(
                withdrawals=Count("id"),
                orders=Sum("order_count"),
                withdrawal_amount=Sum("withdrawal_amount"),
                customer_charges=Sum("customer_charges"),
                withdrawal_fee=Sum("withdrawal_fee"),
                net_profit=Sum("net_profit"),
            )
            .order_by("-withdrawal_date", "payment_method")
        )
        return list(rows)

    @classmethod
    def get_eligible_summary(cls, restaurant: Restaurant, date_utc: date) -> list[dict[str, Any]]:
        """Pending service charges per mobile-money class for one UTC day."""
        orders = cls.eligible_queryset(restaurant)
        start, end = utc_day_bounds(date_utc)
        orders = orders.filter(created_at__gte=start, created_at__lt=end)
        summary = []
        for method in WithdrawalMethod:
            selected = [
                order for order in orders if method.match_pattern in order.payment_method.lower()
            ]
            amount = sum((order.amount_paid_with_charges for order in selected), Decimal("0"))
            charges = sum((order.service_charge for order in selected), Decimal("0"))
            summary.append(
                {
                    "payment_method": method.value,
                    "order_count": len(selected),
                    "withdrawal_amount": amount,
                    "customer_charges": charges,
                }
            )
        return summary
