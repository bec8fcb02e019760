"""Pytest fixtures for tenant tests."""

import pytest

from restaurants.tests.factories import RestaurantFactory, StaffFactory, UserFactory


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def staff(db, restaurant):
    """Active manager membership for ``restaurant``."""
    return StaffFactory(restaurant=restaurant)


@pytest.fixture
def outsider(db):
    """A user with no membership anywhere."""
    return UserFactory()
