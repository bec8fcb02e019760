"""
Restaurants application configuration.

Restaurants are the tenants of the platform: every order, withdrawal batch
and security setting belongs to exactly one of them.
"""

from django.apps import AppConfig


class RestaurantsConfig(AppConfig):
    """Configuration for the restaurants application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "restaurants"
    verbose_name = "Restaurants"
