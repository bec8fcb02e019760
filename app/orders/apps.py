"""
Orders application configuration.

This app owns the order ledger:
- Order records with line items snapshotted at order time
- Lifecycle and payment state machines (django-fsm)
- Derived financial fields and withdrawal eligibility
- Domain events consumed by the realtime app
"""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    """Configuration for the orders application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders"
