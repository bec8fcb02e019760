import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("orders", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_event_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Provider payment/event id",
                        max_length=255,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Provider event type (e.g. 'collection')",
                        max_length=100,
                    ),
                ),
                (
                    "provider_status",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Status string as sent by the provider",
                        max_length=50,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Merchant reference (order number)",
                        max_length=255,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(default=dict, help_text="Parsed webhook body"),
                ),
                ("signature_valid", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processed", "Processed"),
                            ("orphaned", "Orphaned"),
                            ("rejected", "Rejected"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("delivery_count", models.PositiveIntegerField(default=1)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        help_text="Order this event was applied to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="webhook_events",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    ),
                    models.Index(
                        fields=["provider_event_id", "status"],
                        name="webhook_event_status_idx",
                    ),
                ],
            },
        ),
    ]
