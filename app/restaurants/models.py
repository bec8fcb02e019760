"""
Tenant models: restaurants, their tables and their staff.

Menus, theming and QR rendering are handled by other services; this app only
keeps what orders and settlements need to reference.

Usage:
    from restaurants.models import Restaurant, RestaurantStaff, StaffRole

    restaurant = Restaurant.objects.create(name="Chez Wou", slug="chez-wou")
    RestaurantStaff.objects.create(
        user=user, restaurant=restaurant, role=StaffRole.MANAGER
    )
"""

from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class StaffRole(models.TextChoices):
    """Roles a staff member can hold, also recorded on withdrawal approvals."""

    OWNER = "owner", "Owner"
    MANAGER = "manager", "Manager"
    ADMIN = "admin", "Admin"
    SUPERVISOR = "supervisor", "Supervisor"
    OTHER = "other", "Other"


class Restaurant(UUIDPrimaryKeyMixin, BaseModel):
    """
    A tenant account.

    Fields:
        name: Display name
        slug: URL-safe unique handle
        phone_number: Mobile-money number used for settlements
        is_active: Inactive restaurants reject new WebSocket connections
    """

    name = models.CharField(
        max_length=200,
        help_text="Restaurant display name",
    )

    slug = models.SlugField(
        max_length=200,
        unique=True,
        help_text="URL-safe unique identifier",
    )

    phone_number = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Mobile-money number receiving withdrawals",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether the restaurant is currently operating",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Restaurant"
        verbose_name_plural = "Restaurants"

    def __str__(self) -> str:
        return self.name


class Table(UUIDPrimaryKeyMixin, BaseModel):
    """A dine-in table an order may be attached to."""

    restaurant = models.ForeignKey(
        Restaurant,
        on_delete=models.CASCADE,
        related_name="tables",
        help_text="Restaurant owning this table",
    )

    number = models.PositiveIntegerField(
        help_text="Table number shown to customers",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether the table currently accepts orders",
    )

    class Meta:
        ordering = ["restaurant", "number"]
        verbose_name = "Table"
        verbose_name_plural = "Tables"
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant", "number"],
                name="unique_table_number_per_restaurant",
            ),
        ]

    def __str__(self) -> str:
        return f"Table {self.number} ({self.restaurant_id})"


class RestaurantStaff(UUIDPrimaryKeyMixin, BaseModel):
    """
    Membership of a user in a restaurant's staff.

    Grants access to the restaurant's orders, webhook history and withdrawal
    endpoints. The role is informational for withdrawals; approval itself is
    gated by the restaurant's security code.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="restaurant_memberships",
        help_text="Staff user",
    )

    restaurant = models.ForeignKey(
        Restaurant,
        on_delete=models.CASCADE,
        related_name="staff",
        help_text="Restaurant the user works for",
    )

    role = models.CharField(
        max_length=20,
        choices=StaffRole.choices,
        default=StaffRole.OTHER,
        help_text="Role within the restaurant",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Inactive memberships grant no access",
    )

    class Meta:
        verbose_name = "Restaurant staff"
        verbose_name_plural = "Restaurant staff"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "restaurant"],
                name="unique_staff_membership",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} @ {self.restaurant_id} ({self.role})"

    @classmethod
    def is_member(cls, user, restaurant_id) -> bool:
        """Whether ``user`` is active staff of the given restaurant."""
        if not user or not user.is_authenticated:
            return False
        try:
            return cls.objects.filter(
                user=user,
                restaurant_id=restaurant_id,
                is_active=True,
            ).exists()
        except (ValueError, DjangoValidationError):
            # Malformed id
            return False
