"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.

Environment defaults below let the suite run without a .env file: an
in-memory SQLite database, local-memory cache and in-memory channel layer.
Export DATABASE_URL to run against PostgreSQL instead.
"""

import os

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DEBUG", "True")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("CACHE_BACKEND", "locmem")
os.environ.setdefault("CHANNEL_LAYER_BACKEND", "memory")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "True")
os.environ.setdefault("REALTIME_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("NKWA_API_KEY", "test-api-key")
os.environ.setdefault("NKWA_API_BASE_URL", "https://api.pay.test")
os.environ.setdefault("NKWA_CALLBACK_URL", "https://example.com/api/v1/payments/webhooks/nkwa/")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()
