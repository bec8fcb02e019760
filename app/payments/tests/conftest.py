"""
Pytest fixtures for payment tests.

Provides a restaurant with a manager, a provisioned security code, and paid
orders pinned to a known UTC day so withdrawal selection can be asserted
exactly.

Usage:
    def test_settle(restaurant, manager, security_code, mtn_order):
        batch = WithdrawalService.authorize_and_settle(
            restaurant=restaurant, orders=[mtn_order], security_code=security_code, ...
        )
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from orders.state_machines import PaymentMethod
from orders.tests.factories import PaidOrderFactory
from payments.tests.factories import MIDDAY, SecuritySettingFactory, set_created_at
from restaurants.tests.factories import RestaurantFactory, StaffFactory


@pytest.fixture(autouse=True)
def gate_settings(settings):
    settings.SECURITY_GATE_MAX_ATTEMPTS = 5
    settings.SECURITY_GATE_LOCKOUT_MINUTES = 30
    settings.WITHDRAWAL_DEFAULT_SECURITY_CODE = ""
    settings.WITHDRAWAL_FEE_PERCENT = 2.0
    return settings


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def manager(restaurant):
    return StaffFactory(restaurant=restaurant).user


@pytest.fixture
def security_code(restaurant):
    """Plain code of a provisioned SecuritySetting."""
    SecuritySettingFactory(restaurant=restaurant, code="1234")
    return "1234"


@pytest.fixture
def mtn_order(restaurant):
    """Total 1000, captured 1050 by MTN MoMo at midday on 2024-03-01."""
    return set_created_at(PaidOrderFactory(restaurant=restaurant), MIDDAY)


@pytest.fixture
def cash_order(restaurant):
    order = PaidOrderFactory(
        restaurant=restaurant,
        payment_method=PaymentMethod.CASH,
        total_amount=Decimal("500.00"),
        amount_paid_with_charges=Decimal("500.00"),
        payment_transaction_id="",
    )
    return set_created_at(order, MIDDAY)


@pytest.fixture
def api_client(manager):
    client = APIClient()
    client.force_authenticate(manager)
    return client
