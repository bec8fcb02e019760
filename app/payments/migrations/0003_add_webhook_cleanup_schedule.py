"""
Add celery-beat schedule for purging old processed webhook events.

Runs payments.tasks.cleanup_webhook_events once a day at 03:00 UTC.
"""

from django.db import migrations

TASK_NAME = "Cleanup Webhook Events"


def create_periodic_task(apps, schema_editor):
    """Create the daily cleanup task."""
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
        timezone="UTC",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.tasks.cleanup_webhook_events",
            "crontab": schedule,
            "enabled": True,
            "description": (
                "Deletes processed webhook events older than the retention "
                "window. Orphaned, failed and rejected events are kept."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_webhookevent"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
