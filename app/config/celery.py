"""
Celery application.

Workers run the webhook maintenance tasks in payments.tasks:
- reprocess_webhook_event: staff-triggered retry of orphaned/failed deliveries
- cleanup_webhook_events: daily purge, scheduled through django-celery-beat

Settings prefixed with CELERY_ in config.settings configure the app; the
broker and result backend are Redis.

Usage:
    from payments.tasks import reprocess_webhook_event

    reprocess_webhook_event.delay(str(event.id))
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up payments.tasks
app.autodiscover_tasks()
