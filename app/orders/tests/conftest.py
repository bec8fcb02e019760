"""
Pytest fixtures for order tests.

Usage:
    def test_refund(paid_order):
        order = OrderService.refund(paid_order)
        assert order.payment_status == PaymentStatus.REFUNDED
"""

import pytest

from orders.tests.factories import OrderFactory, PaidOrderFactory
from restaurants.tests.factories import RestaurantFactory, StaffFactory


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def staff(db, restaurant):
    return StaffFactory(restaurant=restaurant)


@pytest.fixture
def pending_order(db, restaurant):
    return OrderFactory(restaurant=restaurant)


@pytest.fixture
def paid_order(db, restaurant):
    return PaidOrderFactory(restaurant=restaurant)


@pytest.fixture
def line_items():
    return [
        {"name": "Ndole", "quantity": 2, "unit_price": "2500"},
        {"name": "Plantains", "quantity": 1, "unit_price": "500.50"},
    ]
