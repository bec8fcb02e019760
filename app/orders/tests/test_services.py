"""
Tests for OrderService.
"""

import re
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from freezegun import freeze_time

from core.exceptions import ConflictError, StaleRecordError, ValidationError
from orders.exceptions import InvalidLineItem, InvalidTransition, NegativeAmount
from orders.models import Order
from orders.services import OrderService
from orders.signals import OrderEventType
from orders.state_machines import (
    OrderStatus,
    PaymentMethod,
    PaymentOutcome,
    PaymentStatus,
    ProviderPaymentStatus,
)
from orders.tests.factories import OrderFactory, PaidOrderFactory
from restaurants.tests.factories import TableFactory


def _pay(order, amount="1050", method=PaymentMethod.MTN_MOMO, tx="pay_abc", **kwargs):
    return OrderService.apply_payment_event(
        order,
        captured_amount=Decimal(amount) if amount is not None else None,
        method=method,
        external_tx_id=tx,
        timestamp=datetime(2024, 3, 1, 12, 0, tzinfo=dt_timezone.utc),
        **kwargs,
    )


@pytest.mark.django_db
class TestCreate:
    """Tests for OrderService.create."""

    def test_total_is_sum_of_lines(self, restaurant, line_items):
        order = OrderService.create(restaurant=restaurant, line_items=line_items)

        assert order.total_amount == Decimal("5500.50")
        assert order.amount_paid_with_charges == Decimal("5500.50")
        assert order.items.count() == 2
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.is_eligible_for_withdrawal is False

    def test_order_number_format(self, restaurant, line_items):
        order = OrderService.create(restaurant=restaurant, line_items=line_items)

        assert re.fullmatch(r"ORD-\d+-\d{1,3}", order.order_number)

    def test_items_keep_their_position(self, restaurant, line_items):
        order = OrderService.create(restaurant=restaurant, line_items=line_items)

        assert list(order.items.values_list("name", flat=True)) == ["Ndole", "Plantains"]

    def test_emits_new_order(self, restaurant, line_items, event_receiver, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            order = OrderService.create(restaurant=restaurant, line_items=line_items)

        assert event_receiver.types == [OrderEventType.NEW_ORDER]
        assert event_receiver.events[0][1].pk == order.pk

    def test_empty_order_rejected(self, restaurant):
        with pytest.raises(InvalidLineItem):
            OrderService.create(restaurant=restaurant, line_items=[])

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_bad_quantity_rejected(self, restaurant, quantity):
        with pytest.raises(InvalidLineItem):
            OrderService.create(
                restaurant=restaurant,
                line_items=[{"name": "Ndole", "quantity": quantity, "unit_price": "10"}],
            )

    def test_unparseable_price_rejected(self, restaurant):
        with pytest.raises(InvalidLineItem):
            OrderService.create(
                restaurant=restaurant,
                line_items=[{"name": "Ndole", "quantity": 1, "unit_price": "ten"}],
            )

    def test_negative_price_rejected(self, restaurant):
        with pytest.raises(NegativeAmount):
            OrderService.create(
                restaurant=restaurant,
                line_items=[{"name": "Ndole", "quantity": 1, "unit_price": "-5"}],
            )
        assert not Order.objects.exists()

    def test_table_of_other_restaurant_rejected(self, restaurant, line_items):
        table = TableFactory()

        with pytest.raises(ValidationError) as exc_info:
            OrderService.create(restaurant=restaurant, line_items=line_items, table=table)

        assert exc_info.value.error_code == "TABLE_RESTAURANT_MISMATCH"


@pytest.mark.django_db
class TestApplyPaymentEvent:
    """Tests for OrderService.apply_payment_event."""

    def test_paid_event_marks_order_paid(self, pending_order):
        with freeze_time("2024-03-01 12:00:05"):
            order = _pay(pending_order, phone_number="237670000001")

        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.CONFIRMED
        assert order.paid_at == datetime(2024, 3, 1, 12, 0, 5, tzinfo=dt_timezone.utc)
        assert order.amount_paid_with_charges == Decimal("1050")
        assert order.payment_transaction_id == "pay_abc"
        assert order.payment_provider_status == ProviderPaymentStatus.COMPLETED
        assert order.payment_phone_number == "237670000001"
        assert order.service_charge == Decimal("50")
        assert order.is_eligible_for_withdrawal is True

    def test_applying_twice_converges(self, pending_order):
        first = _pay(pending_order)
        stored_first = Order.objects.get(pk=first.pk)

        with freeze_time("2030-01-01"):
            _pay(pending_order)
        stored_second = Order.objects.get(pk=first.pk)

        for field in (
            "status",
            "payment_status",
            "paid_at",
            "amount_paid_with_charges",
            "is_eligible_for_withdrawal",
            "payment_transaction_id",
        ):
            assert getattr(stored_second, field) == getattr(stored_first, field)
        assert stored_second.version == stored_first.version

    def test_duplicate_event_emits_once(
        self, pending_order, event_receiver, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            _pay(pending_order)
            _pay(pending_order)

        assert event_receiver.types == [OrderEventType.ORDER_PAID]

    def test_missing_amount_defaults_to_total(self, pending_order):
        order = _pay(pending_order, amount=None)

        assert order.amount_paid_with_charges == order.total_amount
        assert order.is_eligible_for_withdrawal is False

    def test_lifecycle_beyond_pending_is_kept(self, restaurant):
        order = OrderFactory(restaurant=restaurant, status=OrderStatus.PREPARING)

        order = _pay(order)

        assert order.status == OrderStatus.PREPARING

    def test_failed_event_keeps_order_pending(self, pending_order):
        order = _pay(pending_order, outcome=PaymentOutcome.FAILED, note="insufficient funds")

        assert order.payment_status == PaymentStatus.PENDING
        assert order.payment_provider_status == ProviderPaymentStatus.FAILED
        assert order.payment_notes == "Payment failed: insufficient funds"
        assert order.paid_at is None

    def test_failed_event_after_paid_is_ignored(self, paid_order):
        before = Order.objects.get(pk=paid_order.pk)

        order = _pay(paid_order, outcome=PaymentOutcome.FAILED)

        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_provider_status == ProviderPaymentStatus.COMPLETED
        assert order.version == before.version

    def test_pending_event_after_paid_is_ignored(self, paid_order):
        order = _pay(paid_order, outcome=PaymentOutcome.PENDING)

        assert order.payment_status == PaymentStatus.PAID

    def test_paid_event_for_refunded_order_is_ignored(self, restaurant):
        order = PaidOrderFactory(restaurant=restaurant, payment_status=PaymentStatus.REFUNDED)

        order = _pay(order)

        assert order.payment_status == PaymentStatus.REFUNDED

    def test_withdrawn_order_amounts_are_frozen(self, restaurant):
        order = PaidOrderFactory(restaurant=restaurant, withdrawn=True)

        order = _pay(order, amount="9999")

        assert order.amount_paid_with_charges == Decimal("1050")

    def test_negative_amount_rejected(self, pending_order):
        with pytest.raises(NegativeAmount):
            _pay(pending_order, amount="-1")

        assert Order.objects.get(pk=pending_order.pk).payment_status == PaymentStatus.PENDING

    def test_manual_payment(self, pending_order, staff):
        order = OrderService.record_manual_payment(
            pending_order,
            method=PaymentMethod.CASH,
            amount=None,
            staff_user=staff.user,
            note="paid at the bar",
        )

        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_provider == f"staff:{staff.user.pk}"
        assert order.payment_metadata == {"manual": True, "note": "paid at the bar"}
        assert order.is_eligible_for_withdrawal is False


@pytest.mark.django_db
class TestRefund:
    """Tests for OrderService.refund."""

    def test_paid_order_refunded(self, paid_order):
        order = OrderService.refund(paid_order)

        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.is_eligible_for_withdrawal is False

    def test_unpaid_order_rejected(self, pending_order):
        with pytest.raises(InvalidTransition):
            OrderService.refund(pending_order)

    def test_withdrawn_order_rejected(self, restaurant):
        order = PaidOrderFactory(restaurant=restaurant, withdrawn=True)

        with pytest.raises(ConflictError) as exc_info:
            OrderService.refund(order)

        assert exc_info.value.error_code == "ALREADY_WITHDRAWN"


@pytest.mark.django_db
class TestTransitionStatus:
    """Tests for OrderService.transition_status."""

    def test_forward_move(self, pending_order):
        order = OrderService.transition_status(pending_order, OrderStatus.CONFIRMED)

        assert order.status == OrderStatus.CONFIRMED
        assert order.confirmed_at is not None

    def test_forward_move_may_skip_steps(self, pending_order):
        order = OrderService.transition_status(pending_order, OrderStatus.READY)

        assert order.status == OrderStatus.READY

    def test_completed_to_pending_rejected(self, restaurant):
        order = OrderFactory(restaurant=restaurant, status=OrderStatus.COMPLETED)

        with pytest.raises(InvalidTransition) as exc_info:
            OrderService.transition_status(order, OrderStatus.PENDING, allow_regression=True)

        assert exc_info.value.current == OrderStatus.COMPLETED
        assert exc_info.value.target == OrderStatus.PENDING

    def test_cancelled_is_terminal(self, restaurant):
        order = OrderFactory(restaurant=restaurant, status=OrderStatus.CANCELLED)

        with pytest.raises(InvalidTransition):
            OrderService.transition_status(order, OrderStatus.CONFIRMED)

    def test_backward_move_requires_override(self, restaurant):
        order = OrderFactory(restaurant=restaurant, status=OrderStatus.READY)

        with pytest.raises(InvalidTransition):
            OrderService.transition_status(order, OrderStatus.PREPARING)

        order = OrderService.transition_status(
            order, OrderStatus.PREPARING, allow_regression=True
        )
        assert order.status == OrderStatus.PREPARING

    def test_complete_sets_served_at(self, restaurant):
        order = OrderFactory(restaurant=restaurant, status=OrderStatus.READY)

        order = OrderService.transition_status(order, OrderStatus.COMPLETED)

        assert order.served_at is not None
        assert order.completed_at == order.served_at

    def test_stale_version_rejected(self, pending_order):
        OrderService.transition_status(pending_order, OrderStatus.CONFIRMED)

        with pytest.raises(StaleRecordError):
            OrderService.transition_status(
                pending_order, OrderStatus.PREPARING, expected_version=pending_order.version
            )

    def test_emits_order_updated(
        self, pending_order, event_receiver, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            OrderService.transition_status(pending_order, OrderStatus.CONFIRMED)

        event_type, _, changes = event_receiver.events[0]
        assert event_type == OrderEventType.ORDER_UPDATED
        assert changes == {"status": OrderStatus.CONFIRMED, "previous_status": OrderStatus.PENDING}

    def test_rejected_transition_emits_nothing(
        self, restaurant, event_receiver, django_capture_on_commit_callbacks
    ):
        order = OrderFactory(restaurant=restaurant, status=OrderStatus.COMPLETED)

        with django_capture_on_commit_callbacks(execute=True):
            with pytest.raises(InvalidTransition):
                OrderService.transition_status(order, OrderStatus.PENDING)

        assert event_receiver.events == []


@pytest.mark.django_db
class TestRecomputeEligibility:
    """Tests for OrderService.recompute_eligibility."""

    def test_mobile_money_with_charge_is_eligible(self, paid_order):
        assert OrderService.recompute_eligibility(paid_order) is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"payment_method": PaymentMethod.CASH},
            {"amount_paid_with_charges": Decimal("1000.00")},
            {"amount_paid_with_charges": Decimal("990.00")},
            {"payment_status": PaymentStatus.PENDING},
        ],
    )
    def test_not_eligible(self, restaurant, overrides):
        order = PaidOrderFactory(restaurant=restaurant, **overrides)

        assert OrderService.recompute_eligibility(order) is False
        assert Order.objects.get(pk=order.pk).is_eligible_for_withdrawal is False

    def test_persists_changed_flag(self, paid_order):
        Order.objects.filter(pk=paid_order.pk).update(is_eligible_for_withdrawal=False)
        order = Order.objects.get(pk=paid_order.pk)

        assert OrderService.recompute_eligibility(order) is True
        assert Order.objects.get(pk=paid_order.pk).is_eligible_for_withdrawal is True
