"""
Payments app configuration.

This app provides:
- Nkwa Pay webhook ingestion and collection requests
- Security Gate for withdrawal authorization
- Withdrawal batches of mobile-money service charges
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
