"""
Order ledger service.

OrderService is the only writer of order state. Every mutation:
- runs in a transaction holding a row lock on the order
- goes through the django-fsm transitions on Order
- recomputes withdrawal eligibility (Order.save)
- emits a domain event after commit (orders.signals)

Payment application converges instead of deduplicating: applying the same
provider outcome twice leaves the order exactly as applying it once, and a
paid order never falls back to pending because of a late or reordered event.

Usage:
    from orders.services import OrderService

    order = OrderService.create(
        restaurant=restaurant,
        line_items=[{"name": "Ndole", "quantity": 2, "unit_price": "2500"}],
    )
    order = OrderService.apply_payment_event(
        order,
        captured_amount=Decimal("5250"),
        method=PaymentMethod.MTN_MOMO,
        external_tx_id="pay_123",
        timestamp=timezone.now(),
    )
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.exceptions import ConflictError, ValidationError
from core.locks import check_version, lock_for_update
from core.services import BaseService
from orders.exceptions import InvalidLineItem, InvalidTransition, NegativeAmount
from orders.models import Order, OrderItem, generate_order_number
from orders.signals import OrderEventType, emit_order_event
from orders.state_machines import (
    OrderStatus,
    OrderType,
    PaymentOutcome,
    PaymentStatus,
    ProviderPaymentStatus,
    can_regress,
    can_transition,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from typing import Any

    from restaurants.models import Restaurant, Table


# Order numbers carry a 0..999 suffix; retry on the rare collision
ORDER_NUMBER_ATTEMPTS = 5

# Lifecycle target -> Order transition method
STATUS_TRANSITION_METHODS: dict[str, str] = {
    OrderStatus.CONFIRMED: "confirm",
    OrderStatus.PREPARING: "start_preparing",
    OrderStatus.READY: "mark_ready",
    OrderStatus.SERVED: "serve",
    OrderStatus.COMPLETED: "complete",
    OrderStatus.CANCELLED: "cancel",
}

# Fields compared to decide whether a payment event changed anything
PAYMENT_STATE_FIELDS = (
    "status",
    "payment_status",
    "paid_at",
    "amount_paid_with_charges",
    "payment_method",
    "payment_transaction_id",
    "payment_phone_number",
    "payment_captured_amount",
    "payment_provider_status",
    "payment_provider",
    "payment_recorded_at",
    "payment_notes",
    "payment_metadata",
)


def _to_decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidLineItem(
            f"{field} must be a number",
            details={"field": field, "value": str(value)},
        ) from e


class OrderService(BaseService):
    """Creates orders and applies lifecycle and payment changes to them."""

    # ==========================================================================
    # Creation
    # ==========================================================================

    @classmethod
    def create(
        cls,
        restaurant: Restaurant,
        line_items: Iterable[dict[str, Any]],
        table: Table | None = None,
        *,
        order_type: str = OrderType.DINE_IN,
        payment_method: str = "",
        customer_name: str = "",
        customer_phone: str = "",
        customer_email: str = "",
        customer_notes: str = "",
    ) -> Order:
        """
        Create an order from line items.

        Each line item is a mapping with ``name``, ``quantity``,
        ``unit_price`` and optionally ``menu_item_id`` and
        ``special_instructions``.

        Raises:
            InvalidLineItem: Empty order, quantity < 1, unparseable numbers
            NegativeAmount: Negative unit price or total
            ValidationError: Table belongs to another restaurant
        """
        items = cls._validate_line_items(line_items)
        total = sum((item["unit_price"] * item["quantity"] for item in items), Decimal("0"))
        if total < 0:
            raise NegativeAmount(
                f"Order total cannot be negative ({total})",
                details={"total_amount": str(total)},
            )

        if table is not None and table.restaurant_id != restaurant.id:
            raise ValidationError(
                "Table does not belong to this restaurant",
                error_code="TABLE_RESTAURANT_MISMATCH",
                details={"table_id": str(table.id)},
            )

        for attempt in range(ORDER_NUMBER_ATTEMPTS):
            try:
                with cls.atomic():
                    order = Order.objects.create(
                        order_number=generate_order_number(),
                        restaurant=restaurant,
                        table=table,
                        order_type=order_type,
                        payment_method=payment_method,
                        customer_name=customer_name,
                        customer_phone=customer_phone,
                        customer_email=customer_email,
                        customer_notes=customer_notes,
                        total_amount=total,
                        amount_paid_with_charges=total,
                    )
                    OrderItem.objects.bulk_create(
                        OrderItem(order=order, position=position, **item)
                        for position, item in enumerate(items)
                    )
                    emit_order_event(order, OrderEventType.NEW_ORDER)
                break
            except IntegrityError:
                if attempt == ORDER_NUMBER_ATTEMPTS - 1:
                    raise
                cls.get_logger().warning("Order number collision, regenerating")

        cls.get_logger().info(
            f"Created order {order.order_number} total={total}",
            extra={"order_id": str(order.id), "restaurant_id": str(restaurant.id)},
        )
        return order

    @classmethod
    def _validate_line_items(cls, line_items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for index, raw in enumerate(line_items):
            name = (raw.get("name") or "").strip()
            if not name:
                raise InvalidLineItem(
                    f"Line item {index} has no name", details={"index": index}
                )
            quantity = raw.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
                raise InvalidLineItem(
                    f"Line item {index} quantity must be an integer >= 1",
                    details={"index": index, "quantity": quantity},
                )
            unit_price = _to_decimal(raw.get("unit_price"), "unit_price")
            if unit_price < 0:
                raise NegativeAmount(
                    f"Line item {index} has a negative unit price",
                    details={"index": index, "unit_price": str(unit_price)},
                )
            items.append(
                {
                    "menu_item_id": raw.get("menu_item_id"),
                    "name": name,
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "special_instructions": raw.get("special_instructions") or "",
                }
            )
        if not items:
            raise InvalidLineItem("An order needs at least one line item")
        return items

    # ==========================================================================
    # Payment
    # ==========================================================================

    @classmethod
    def apply_payment_event(
        cls,
        order: Order,
        captured_amount: Decimal | None,
        method: str,
        external_tx_id: str,
        timestamp: datetime | None,
        *,
        outcome: str = PaymentOutcome.PAID,
        phone_number: str = "",
        provider: str = "",
        metadata: dict[str, Any] | None = None,
        note: str = "",
    ) -> Order:
        """
        Apply a payment outcome to an order.

        PAID:
            pending -> paid (paid_at set once), captured amount recorded,
            lifecycle pending -> confirmed. Repeats converge to the same state.
        FAILED / PENDING:
            recorded on the snapshot only while the order is still unpaid;
            ignored once paid or refunded.

        Raises:
            NegativeAmount: captured_amount < 0
        """
        if captured_amount is not None and captured_amount < 0:
            raise NegativeAmount(
                f"Captured amount cannot be negative ({captured_amount})",
                details={"captured_amount": str(captured_amount)},
            )

        with cls.atomic():
            locked = lock_for_update(Order, order.pk)
            before = cls._payment_state(locked)
            became_paid = False

            if outcome == PaymentOutcome.PAID:
                became_paid = cls._apply_paid(
                    locked, captured_amount, method, external_tx_id, timestamp,
                    phone_number, provider, metadata,
                )
            elif locked.payment_status == PaymentStatus.PENDING:
                cls._record_attempt(
                    locked,
                    ProviderPaymentStatus.FAILED
                    if outcome == PaymentOutcome.FAILED
                    else ProviderPaymentStatus.PENDING,
                    captured_amount, method, external_tx_id, timestamp,
                    phone_number, provider, metadata,
                )
                if outcome == PaymentOutcome.FAILED:
                    locked.payment_notes = f"Payment failed: {note or 'unknown reason'}"
            else:
                cls.get_logger().info(
                    f"Ignoring {outcome} event for {locked.payment_status} order "
                    f"{locked.order_number}",
                    extra={"order_id": str(locked.id), "transaction_id": external_tx_id},
                )

            after = cls._payment_state(locked)
            if after == before:
                return locked

            locked.save()
            emit_order_event(
                locked,
                OrderEventType.ORDER_PAID if became_paid else OrderEventType.ORDER_UPDATED,
                changes={k: str(v) for k, v in after.items() if before.get(k) != v},
            )

        cls.get_logger().info(
            f"Applied {outcome} payment to order {locked.order_number}",
            extra={
                "order_id": str(locked.id),
                "restaurant_id": str(locked.restaurant_id),
                "transaction_id": external_tx_id,
                "payment_status": locked.payment_status,
            },
        )
        return locked

    @classmethod
    def _apply_paid(
        cls, order, captured_amount, method, external_tx_id, timestamp,
        phone_number, provider, metadata,
    ) -> bool:
        if order.payment_status == PaymentStatus.REFUNDED:
            cls.get_logger().warning(
                f"Paid event for refunded order {order.order_number} ignored",
                extra={"order_id": str(order.id), "transaction_id": external_tx_id},
            )
            return False
        if order.withdrawn:
            # Settled amounts are frozen
            return False

        became_paid = order.payment_status == PaymentStatus.PENDING
        if became_paid:
            order.mark_paid()

        cls._record_attempt(
            order, ProviderPaymentStatus.COMPLETED, captured_amount, method,
            external_tx_id, timestamp, phone_number, provider, metadata,
        )
        order.amount_paid_with_charges = (
            captured_amount if captured_amount is not None else order.total_amount
        )
        if order.status == OrderStatus.PENDING:
            order.confirm()
        return became_paid

    @staticmethod
    def _record_attempt(
        order, provider_status, captured_amount, method, external_tx_id,
        timestamp, phone_number, provider, metadata,
    ) -> None:
        order.payment_provider_status = provider_status
        if method:
            order.payment_method = method
        if external_tx_id:
            order.payment_transaction_id = external_tx_id
        if captured_amount is not None:
            order.payment_captured_amount = captured_amount
        if phone_number:
            order.payment_phone_number = phone_number
        if provider:
            order.payment_provider = provider
        if timestamp is not None:
            order.payment_recorded_at = timestamp
        if metadata:
            order.payment_metadata = {**(order.payment_metadata or {}), **metadata}

    @staticmethod
    def _payment_state(order: Order) -> dict[str, Any]:
        state = {field: getattr(order, field) for field in PAYMENT_STATE_FIELDS}
        for key in ("amount_paid_with_charges", "payment_captured_amount"):
            if state[key] is not None:
                state[key] = Decimal(state[key]).quantize(Decimal("0.01"))
        return state

    @classmethod
    def record_manual_payment(
        cls,
        order: Order,
        method: str,
        amount: Decimal | None,
        staff_user,
        note: str = "",
    ) -> Order:
        """Staff override: mark an order paid at the counter or by hand."""
        cls.get_logger().info(
            f"Manual payment for {order.order_number} by user {staff_user.pk}",
            extra={"order_id": str(order.id), "method": method},
        )
        return cls.apply_payment_event(
            order,
            captured_amount=amount,
            method=method,
            external_tx_id="",
            timestamp=None,
            outcome=PaymentOutcome.PAID,
            provider=f"staff:{staff_user.pk}",
            metadata={"manual": True, "note": note} if note else {"manual": True},
        )

    @classmethod
    def refund(cls, order: Order) -> Order:
        """
        Move a paid order to refunded.

        Raises:
            InvalidTransition: Order is not paid
            ConflictError: The service charge was already withdrawn
        """
        with cls.atomic():
            locked = lock_for_update(Order, order.pk)
            if locked.withdrawn:
                raise ConflictError(
                    f"Order {locked.order_number} was already withdrawn",
                    error_code="ALREADY_WITHDRAWN",
                    details={"order_id": str(locked.id)},
                )
            if locked.payment_status != PaymentStatus.PAID:
                raise InvalidTransition(
                    locked.payment_status, PaymentStatus.REFUNDED, field="payment_status"
                )
            locked.refund()
            locked.save()
            emit_order_event(
                locked,
                OrderEventType.ORDER_UPDATED,
                changes={"payment_status": PaymentStatus.REFUNDED},
            )
        return locked

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @classmethod
    def transition_status(
        cls,
        order: Order,
        new_status: str,
        *,
        allow_regression: bool = False,
        expected_version: int | None = None,
    ) -> Order:
        """
        Move an order to ``new_status``.

        Forward moves follow the transition table. With ``allow_regression``
        (explicit staff override) the order may also step back to an earlier
        open status; terminal orders never move.

        Raises:
            InvalidTransition: Target unreachable from the current status
            StaleRecordError: ``expected_version`` no longer matches
        """
        with cls.atomic():
            if expected_version is not None:
                locked = check_version(Order, order.pk, expected_version)
            else:
                locked = lock_for_update(Order, order.pk)
            current = locked.status

            if can_transition(current, new_status):
                getattr(locked, STATUS_TRANSITION_METHODS[new_status])()
            elif allow_regression and can_regress(current, new_status):
                locked.revert_to(new_status)
            else:
                raise InvalidTransition(current, new_status)

            locked.save()
            emit_order_event(
                locked,
                OrderEventType.ORDER_UPDATED,
                changes={"status": new_status, "previous_status": current},
            )

        cls.get_logger().info(
            f"Order {locked.order_number} {current} -> {new_status}",
            extra={"order_id": str(locked.id), "restaurant_id": str(locked.restaurant_id)},
        )
        return locked

    # ==========================================================================
    # Eligibility
    # ==========================================================================

    @classmethod
    def recompute_eligibility(cls, order: Order) -> bool:
        """Recompute and persist ``is_eligible_for_withdrawal``."""
        eligible = order.compute_eligibility()
        if eligible != order.is_eligible_for_withdrawal:
            with transaction.atomic():
                order.save(update_fields=["is_eligible_for_withdrawal"])
        return eligible
