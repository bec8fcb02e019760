"""
Tests for WithdrawalService.

Tests cover:
- Eligible order selection by UTC day and mobile-money class
- Batch totals and fee computation
- All-or-nothing settlement and double-withdrawal protection
- Security Gate outcomes propagating as errors
- Payout through the provider, failure and cancellation releasing orders
- Reporting aggregates
"""

from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from core.exceptions import ConflictError, ValidationError
from orders.models import Order
from orders.signals import OrderEventType
from orders.state_machines import PaymentMethod, PaymentStatus
from orders.tests.factories import OrderFactory, PaidOrderFactory
from payments.adapters import ProviderPaymentResult
from payments.exceptions import (
    AlreadyWithdrawn,
    EmptySelection,
    ProviderRequestError,
    ProviderUnavailableError,
    SecurityCodeDenied,
    SecurityCodeNotConfigured,
    SecurityGateLocked,
)
from payments.models import PaymentWithdrawal, SecuritySetting
from payments.services import WithdrawalService
from payments.services.withdrawal_service import compute_fee, utc_day_bounds
from payments.state_machines import SecurityCheckOutcome, WithdrawalMethod, WithdrawalStatus
from payments.tests.factories import MIDDAY, PaymentWithdrawalFactory, set_created_at
from restaurants.models import StaffRole

DAY = date(2024, 3, 1)
DISBURSE = "payments.services.withdrawal_service.NkwaPayAdapter.disburse"


def settle(restaurant, user, orders, code="1234", **kwargs):
    params = {
        "role": StaffRole.MANAGER,
        "payment_method": WithdrawalMethod.MTN,
        "withdrawal_date": DAY,
    }
    params.update(kwargs)
    return WithdrawalService.authorize_and_settle(
        restaurant=restaurant,
        orders=orders,
        security_code=code,
        authorized_by=user,
        **params,
    )


class TestHelpers:
    def test_utc_day_bounds_half_open(self):
        start, end = utc_day_bounds(DAY)

        assert start == datetime(2024, 3, 1, tzinfo=dt_timezone.utc)
        assert end == datetime(2024, 3, 2, tzinfo=dt_timezone.utc)

    @pytest.mark.parametrize(
        "amount,percent,fee",
        [
            (Decimal("1050"), Decimal("2"), Decimal("21.00")),
            (Decimal("1575"), Decimal("2"), Decimal("31.50")),
            (Decimal("1000.25"), Decimal("2.5"), Decimal("25.01")),
            (Decimal("0"), Decimal("2"), Decimal("0.00")),
        ],
    )
    def test_compute_fee(self, amount, percent, fee):
        assert compute_fee(amount, percent) == fee


@pytest.mark.django_db
class TestListEligibleOrders:
    def test_selects_mobile_money_with_charges(self, restaurant, mtn_order, cash_order):
        orders = WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn")

        assert orders == [mtn_order]

    def test_pattern_is_case_insensitive(self, restaurant, mtn_order):
        assert WithdrawalService.list_eligible_orders(restaurant, DAY, "MTN") == [mtn_order]
        assert WithdrawalService.list_eligible_orders(restaurant, DAY, "orange") == []

    def test_utc_day_boundary(self, restaurant):
        last_ms = set_created_at(
            PaidOrderFactory(restaurant=restaurant),
            datetime(2024, 3, 1, 23, 59, 59, 999000, tzinfo=dt_timezone.utc),
        )
        set_created_at(
            PaidOrderFactory(restaurant=restaurant),
            datetime(2024, 3, 2, 0, 0, tzinfo=dt_timezone.utc),
        )
        set_created_at(
            PaidOrderFactory(restaurant=restaurant),
            datetime(2024, 2, 29, 23, 59, 59, tzinfo=dt_timezone.utc),
        )

        orders = WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn")

        assert [o.pk for o in orders] == [last_ms.pk]

    def test_oldest_first(self, restaurant, mtn_order):
        early = set_created_at(
            PaidOrderFactory(restaurant=restaurant),
            datetime(2024, 3, 1, 8, 0, tzinfo=dt_timezone.utc),
        )

        orders = WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn")

        assert [o.pk for o in orders] == [early.pk, mtn_order.pk]

    def test_excludes_withdrawn_unpaid_and_no_charge(self, restaurant, mtn_order):
        batch = PaymentWithdrawalFactory(restaurant=restaurant)
        set_created_at(
            PaidOrderFactory(restaurant=restaurant, withdrawn=True, withdrawal_batch=batch),
            MIDDAY,
        )
        set_created_at(OrderFactory(restaurant=restaurant), MIDDAY)
        set_created_at(
            PaidOrderFactory(
                restaurant=restaurant, amount_paid_with_charges=Decimal("1000.00")
            ),
            MIDDAY,
        )

        assert WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn") == [mtn_order]

    def test_scoped_to_restaurant(self, restaurant, mtn_order):
        set_created_at(PaidOrderFactory(), MIDDAY)

        assert WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn") == [mtn_order]


@pytest.mark.django_db
class TestAuthorizeAndSettle:
    def test_mtn_batch_totals(self, restaurant, manager, security_code, mtn_order, cash_order):
        orders = WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn")

        batch = settle(restaurant, manager, orders)

        assert batch.status == WithdrawalStatus.COMPLETED
        assert batch.withdrawal_number.startswith("WDL-")
        assert batch.order_count == 1
        assert batch.withdrawal_amount == Decimal("1050.00")
        assert batch.customer_charges == Decimal("50.00")
        assert batch.withdrawal_fee == Decimal("21.00")
        assert batch.net_profit == Decimal("29.00")
        assert batch.fee_percent == Decimal("2.0")
        assert batch.security_check_outcome == SecurityCheckOutcome.APPROVED
        assert batch.authorized_by == manager
        assert batch.completed_at is not None

        order = Order.objects.get(pk=mtn_order.pk)
        assert order.withdrawn is True
        assert order.withdrawal_batch_id == batch.pk
        assert order.version == mtn_order.version + 1
        assert Order.objects.get(pk=cash_order.pk).withdrawn is False

    def test_fee_percent_from_settings(
        self, restaurant, manager, security_code, mtn_order, settings
    ):
        settings.WITHDRAWAL_FEE_PERCENT = 3.5

        batch = settle(restaurant, manager, [mtn_order])

        assert batch.withdrawal_fee == Decimal("36.75")
        assert batch.net_profit == Decimal("13.25")

    def test_emits_order_updated(
        self,
        restaurant,
        manager,
        security_code,
        mtn_order,
        event_receiver,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            batch = settle(restaurant, manager, [mtn_order])

        assert event_receiver.types == [OrderEventType.ORDER_UPDATED]
        _, order, changes = event_receiver.events[0]
        assert order.pk == mtn_order.pk
        assert changes == {"withdrawn": True, "withdrawal_batch": str(batch.pk)}

    def test_second_withdrawal_of_same_order_fails(
        self, restaurant, manager, security_code, mtn_order
    ):
        settle(restaurant, manager, [mtn_order])

        with pytest.raises(AlreadyWithdrawn):
            settle(restaurant, manager, [mtn_order])

        assert PaymentWithdrawal.objects.count() == 1

    def test_partial_overlap_rolls_back_everything(
        self, restaurant, manager, security_code, mtn_order
    ):
        fresh = set_created_at(PaidOrderFactory(restaurant=restaurant), MIDDAY)
        settle(restaurant, manager, [mtn_order])

        with pytest.raises(AlreadyWithdrawn) as exc_info:
            settle(restaurant, manager, [mtn_order, fresh])

        assert exc_info.value.details == {"selected": 2, "available": 1}
        assert Order.objects.get(pk=fresh.pk).withdrawn is False
        assert PaymentWithdrawal.objects.count() == 1

    def test_order_refunded_after_selection(self, restaurant, manager, security_code, mtn_order):
        Order.objects.filter(pk=mtn_order.pk).update(
            payment_status=PaymentStatus.REFUNDED, is_eligible_for_withdrawal=False
        )

        with pytest.raises(AlreadyWithdrawn):
            settle(restaurant, manager, [mtn_order])

    def test_empty_selection(self, restaurant, manager, security_code):
        with pytest.raises(EmptySelection):
            settle(restaurant, manager, [])

        assert SecuritySetting.objects.get(restaurant=restaurant).failed_attempts == 0

    def test_wrong_code_denied(self, restaurant, manager, security_code, mtn_order):
        with pytest.raises(SecurityCodeDenied) as exc_info:
            settle(restaurant, manager, [mtn_order], code="0000")

        assert exc_info.value.remaining_attempts == 4
        assert not PaymentWithdrawal.objects.exists()
        assert Order.objects.get(pk=mtn_order.pk).withdrawn is False
        assert SecuritySetting.objects.get(restaurant=restaurant).failed_attempts == 1

    def test_locked_gate(self, restaurant, manager, security_code, mtn_order):
        for _ in range(4):
            with pytest.raises(SecurityCodeDenied):
                settle(restaurant, manager, [mtn_order], code="0000")

        with pytest.raises(SecurityGateLocked) as exc_info:
            settle(restaurant, manager, [mtn_order], code="0000")
        assert exc_info.value.retry_after == 1800

        with pytest.raises(SecurityGateLocked):
            settle(restaurant, manager, [mtn_order])
        assert not PaymentWithdrawal.objects.exists()

    def test_no_code_configured(self, restaurant, manager, mtn_order):
        with pytest.raises(SecurityCodeNotConfigured):
            settle(restaurant, manager, [mtn_order])

    def test_other_role_needs_description(self, restaurant, manager, security_code, mtn_order):
        with pytest.raises(ValidationError) as exc_info:
            settle(restaurant, manager, [mtn_order], role=StaffRole.OTHER)

        assert exc_info.value.error_code == "CUSTOM_ROLE_REQUIRED"

        batch = settle(
            restaurant, manager, [mtn_order], role=StaffRole.OTHER, custom_role="Night auditor"
        )
        assert batch.custom_role == "Night auditor"

    def test_foreign_order_rejected(self, restaurant, manager, security_code, mtn_order):
        foreign = set_created_at(PaidOrderFactory(), MIDDAY)

        with pytest.raises(ValidationError) as exc_info:
            settle(restaurant, manager, [mtn_order, foreign])

        assert exc_info.value.error_code == "ORDER_RESTAURANT_MISMATCH"
        assert Order.objects.get(pk=mtn_order.pk).withdrawn is False

    def test_method_mismatch_rejected(self, restaurant, manager, security_code, mtn_order):
        orange = set_created_at(
            PaidOrderFactory(restaurant=restaurant, payment_method=PaymentMethod.ORANGE_MONEY),
            MIDDAY,
        )

        with pytest.raises(ValidationError) as exc_info:
            settle(restaurant, manager, [mtn_order, orange])

        assert exc_info.value.error_code == "PAYMENT_METHOD_MISMATCH"
        assert exc_info.value.details == {"order_numbers": [orange.order_number]}

    def test_orders_from_another_day_rejected(
        self, restaurant, manager, security_code, mtn_order
    ):
        with pytest.raises(ValidationError) as exc_info:
            settle(restaurant, manager, [mtn_order], withdrawal_date=date(2024, 3, 20))

        assert exc_info.value.error_code == "ORDER_DATE_MISMATCH"
        assert exc_info.value.details == {"order_numbers": [mtn_order.order_number]}
        assert not PaymentWithdrawal.objects.exists()
        assert Order.objects.get(pk=mtn_order.pk).withdrawn is False

    def test_day_boundary_uses_utc(self, restaurant, manager, security_code):
        late = set_created_at(
            PaidOrderFactory(restaurant=restaurant),
            datetime(2024, 3, 1, 23, 59, 59, tzinfo=dt_timezone.utc),
        )
        next_day = set_created_at(
            PaidOrderFactory(restaurant=restaurant),
            datetime(2024, 3, 2, 0, 0, tzinfo=dt_timezone.utc),
        )

        with pytest.raises(ValidationError) as exc_info:
            settle(restaurant, manager, [late, next_day])

        assert exc_info.value.details == {"order_numbers": [next_day.order_number]}
        assert settle(restaurant, manager, [late]).order_count == 1

    def test_completed_batch_is_immutable(self, restaurant, manager, security_code, mtn_order):
        batch = settle(restaurant, manager, [mtn_order])
        batch.notes = "edited"

        with pytest.raises(ConflictError) as exc_info:
            batch.save()

        assert exc_info.value.error_code == "WITHDRAWAL_COMPLETED"


@pytest.mark.django_db
class TestReporting:
    def test_totals_empty(self, restaurant):
        totals = WithdrawalService.get_restaurant_totals(restaurant)

        assert totals["total_withdrawals"] == 0
        assert totals["total_net_profit"] == Decimal("0.00")

    def test_totals_ignore_failed_batches(self, restaurant):
        PaymentWithdrawalFactory(restaurant=restaurant)
        PaymentWithdrawalFactory(restaurant=restaurant)
        PaymentWithdrawalFactory(restaurant=restaurant, status=WithdrawalStatus.FAILED)

        totals = WithdrawalService.get_restaurant_totals(restaurant)

        assert totals["total_withdrawals"] == 2
        assert totals["total_amount"] == Decimal("2100.00")
        assert totals["total_fees"] == Decimal("42.00")
        assert totals["total_net_profit"] == Decimal("58.00")

    def test_daily_summary(self, restaurant):
        PaymentWithdrawalFactory(restaurant=restaurant, withdrawal_date=date(2024, 3, 1))
        PaymentWithdrawalFactory(restaurant=restaurant, withdrawal_date=date(2024, 3, 1))
        PaymentWithdrawalFactory(
            restaurant=restaurant,
            withdrawal_date=date(2024, 3, 2),
            payment_method=WithdrawalMethod.ORANGE,
        )
        PaymentWithdrawalFactory(restaurant=restaurant, withdrawal_date=date(2024, 3, 5))

        rows = WithdrawalService.get_daily_summary(
            restaurant, date(2024, 3, 1), date(2024, 3, 2)
        )

        assert [(r["withdrawal_date"], r["payment_method"]) for r in rows] == [
            (date(2024, 3, 2), WithdrawalMethod.ORANGE),
            (date(2024, 3, 1), WithdrawalMethod.MTN),
        ]
        assert rows[1]["withdrawals"] == 2
        assert rows[1]["orders"] == 2
        assert rows[1]["net_profit"] == Decimal("58.00")

    def test_eligible_summary(self, restaurant, mtn_order, cash_order):
        set_created_at(
            PaidOrderFactory(
                restaurant=restaurant,
                payment_method=PaymentMethod.ORANGE_MONEY,
                amount_paid_with_charges=Decimal("1100.00"),
            ),
            MIDDAY,
        )

        rows = WithdrawalService.get_eligible_summary(restaurant, DAY)
        summary = {row["payment_method"]: row for row in rows}

        assert summary["MTN"]["order_count"] == 1
        assert summary["MTN"]["customer_charges"] == Decimal("50.00")
        assert summary["ORANGE"]["withdrawal_amount"] == Decimal("1100.00")
        assert summary["ORANGE"]["customer_charges"] == Decimal("100.00")


@pytest.mark.django_db
class TestDisburse:
    def payout(self, **overrides):
        data = {
            "id": "dis_001",
            "status": "pending",
            "amount": Decimal("1050"),
            "reference": "WDL-1",
            "phone_number": "237670000009",
            "payment_type": "disbursement",
        }
        data.update(overrides)
        return ProviderPaymentResult(**data)

    def test_settle_and_pay_out(self, restaurant, manager, security_code, mtn_order):
        with patch(DISBURSE, return_value=self.payout()) as disburse:
            batch = settle(
                restaurant,
                manager,
                [mtn_order],
                payment_phone_number="237670000009",
                disburse=True,
            )

        disburse.assert_called_once_with(
            amount=Decimal("1050.00"),
            phone_number="237670000009",
            reference=batch.withdrawal_number,
        )
        assert batch.status == WithdrawalStatus.COMPLETED
        assert batch.transaction_id == "dis_001"
        assert batch.completed_at is not None
        assert Order.objects.get(pk=mtn_order.pk).withdrawal_batch_id == batch.pk

    def test_payout_number_required(self, restaurant, manager, security_code, mtn_order):
        with patch(DISBURSE) as disburse:
            with pytest.raises(ValidationError) as exc_info:
                settle(restaurant, manager, [mtn_order], disburse=True)

        assert exc_info.value.error_code == "PAYOUT_PHONE_REQUIRED"
        disburse.assert_not_called()
        assert not PaymentWithdrawal.objects.exists()
        # Rejected before the code is checked
        assert SecuritySetting.objects.get(restaurant=restaurant).failed_attempts == 0

    def test_rejected_payout_fails_batch_and_releases_orders(
        self,
        restaurant,
        manager,
        security_code,
        mtn_order,
        event_receiver,
        django_capture_on_commit_callbacks,
    ):
        rejected = ProviderRequestError("invalid phone", status_code=400)

        with django_capture_on_commit_callbacks(execute=True):
            with patch(DISBURSE, side_effect=rejected):
                with pytest.raises(ProviderRequestError) as exc_info:
                    settle(
                        restaurant,
                        manager,
                        [mtn_order],
                        payment_phone_number="237670000009",
                        disburse=True,
                    )

        batch = PaymentWithdrawal.objects.get()
        assert exc_info.value.details["withdrawal_id"] == str(batch.pk)
        assert batch.status == WithdrawalStatus.FAILED
        assert batch.failure_reason == "[PROVIDER_REQUEST_REJECTED] invalid phone"
        assert batch.transaction_id == ""

        order = Order.objects.get(pk=mtn_order.pk)
        assert order.withdrawn is False
        assert order.withdrawal_batch_id is None
        assert WithdrawalService.list_eligible_orders(restaurant, DAY, "mtn") == [order]

        assert event_receiver.types == [OrderEventType.ORDER_UPDATED] * 2
        assert event_receiver.events[-1][2] == {"withdrawn": False, "withdrawal_batch": None}

    def test_unconfirmed_payout_stays_processing_until_retried(
        self, restaurant, manager, security_code, mtn_order
    ):
        with patch(DISBURSE, side_effect=ProviderUnavailableError("down", status_code=503)):
            with pytest.raises(ProviderUnavailableError):
                settle(
                    restaurant,
                    manager,
                    [mtn_order],
                    payment_phone_number="237670000009",
                    disburse=True,
                )

        batch = PaymentWithdrawal.objects.get()
        assert batch.status == WithdrawalStatus.PROCESSING
        assert Order.objects.get(pk=mtn_order.pk).withdrawn is True

        with patch(DISBURSE, return_value=self.payout(id="dis_002")):
            batch = WithdrawalService.disburse(batch)

        assert batch.status == WithdrawalStatus.COMPLETED
        assert batch.transaction_id == "dis_002"

    def test_only_processing_batches(self, restaurant):
        batch = PaymentWithdrawalFactory(restaurant=restaurant, payment_phone_number="237670000009")

        with patch(DISBURSE) as disburse:
            with pytest.raises(ConflictError) as exc_info:
                WithdrawalService.disburse(batch)

        assert exc_info.value.error_code == "WITHDRAWAL_NOT_PROCESSING"
        disburse.assert_not_called()

    def test_processing_batch_without_number(self, restaurant):
        batch = PaymentWithdrawalFactory(restaurant=restaurant, status=WithdrawalStatus.PROCESSING)

        with pytest.raises(ValidationError) as exc_info:
            WithdrawalService.disburse(batch)

        assert exc_info.value.error_code == "PAYOUT_PHONE_REQUIRED"


@pytest.mark.django_db
class TestCancel:
    def test_releases_orders(self, restaurant, manager, security_code, mtn_order):
        with patch(DISBURSE, side_effect=ProviderUnavailableError("down")):
            with pytest.raises(ProviderUnavailableError):
                settle(
                    restaurant,
                    manager,
                    [mtn_order],
                    payment_phone_number="237670000009",
                    disburse=True,
                )
        batch = PaymentWithdrawal.objects.get()

        cancelled = WithdrawalService.cancel(batch, reason="Paid out by hand")

        assert cancelled.status == WithdrawalStatus.CANCELLED
        assert cancelled.notes == "Paid out by hand"
        order = Order.objects.get(pk=mtn_order.pk)
        assert order.withdrawn is False
        assert order.version == mtn_order.version + 2

        # The order can be settled again
        assert settle(restaurant, manager, [order]).order_count == 1

    def test_completed_batch_cannot_be_cancelled(
        self, restaurant, manager, security_code, mtn_order
    ):
        batch = settle(restaurant, manager, [mtn_order])

        with pytest.raises(ConflictError) as exc_info:
            WithdrawalService.cancel(batch, reason="too late")

        assert exc_info.value.error_code == "WITHDRAWAL_NOT_OPEN"
        assert PaymentWithdrawal.objects.get(pk=batch.pk).status == WithdrawalStatus.COMPLETED
        assert Order.objects.get(pk=mtn_order.pk).withdrawn is True
