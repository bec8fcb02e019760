import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models

import payments.models.withdrawal


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("restaurants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentWithdrawal",
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
                    "withdrawal_number",
                    models.CharField(
                        default=payments.models.withdrawal.generate_withdrawal_number,
                        editable=False,
                        help_text="Public withdrawal number (WDL-<timestamp>-<random>)",
                        max_length=40,
                        unique=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("MTN", "MTN MoMo"), ("ORANGE", "Orange Money")],
                        help_text="Mobile-money class settled by this batch",
                        max_length=10,
                    ),
                ),
                (
                    "withdrawal_date",
                    models.DateField(help_text="UTC day the orders were selected from"),
                ),
                ("order_count", models.PositiveIntegerField(default=0)),
                (
                    "payment_phone_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Restaurant mobile-money number receiving the funds",
                        max_length=32,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Provider disbursement id, when paid out through the provider",
                        max_length=255,
                    ),
                ),
                (
                    "withdrawal_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Sum of amount_paid_with_charges over the batch",
                        max_digits=12,
                    ),
                ),
                (
                    "customer_charges",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Sum of service charges over the batch",
                        max_digits=12,
                    ),
                ),
                (
                    "withdrawal_fee",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Platform fee on withdrawal_amount",
                        max_digits=12,
                    ),
                ),
                (
                    "fee_percent",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Fee rate applied, in percent",
                        max_digits=5,
                    ),
                ),
                (
                    "net_profit",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="customer_charges - withdrawal_fee",
                        max_digits=12,
                    ),
                ),
                (
                    "authorized_role",
                    models.CharField(
                        choices=[
                            ("owner", "Owner"),
                            ("manager", "Manager"),
                            ("admin", "Admin"),
                            ("supervisor", "Supervisor"),
                            ("other", "Other"),
                        ],
                        default="manager",
                        max_length=20,
                    ),
                ),
                (
                    "custom_role",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Role description when authorized_role is 'other'",
                        max_length=100,
                    ),
                ),
                (
                    "security_check_outcome",
                    models.CharField(
                        choices=[
                            ("approved", "Approved"),
                            ("denied", "Denied"),
                            ("locked", "Locked"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "authorized_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Batch status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "authorized_by",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="authorized_withdrawals",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "restaurant",
                    models.ForeignKey(
                        help_text="Restaurant whose charges are withdrawn",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawals",
                        to="restaurants.restaurant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Withdrawal",
                "verbose_name_plural": "Payment Withdrawals",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["restaurant", "withdrawal_date"],
                        name="withdrawal_restaurant_day_idx",
                    ),
                    models.Index(
                        fields=["restaurant", "payment_method"],
                        name="withdrawal_restaurant_meth_idx",
                    ),
                    models.Index(
                        fields=["restaurant", "status", "withdrawal_date"],
                        name="withdrawal_status_day_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("withdrawal_amount__gte", 0),
                            ("customer_charges__gte", 0),
                            ("withdrawal_fee__gte", 0),
                        ),
                        name="withdrawal_amounts_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="SecuritySetting",
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
                    "setting_type",
                    models.CharField(
                        choices=[
                            ("withdrawal_security_code", "Withdrawal security code")
                        ],
                        default="withdrawal_security_code",
                        max_length=50,
                    ),
                ),
                ("code_hash", models.CharField(max_length=255)),
                (
                    "description",
                    models.CharField(
                        blank=True,
                        default="Security code required for payment withdrawals",
                        max_length=255,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("failed_attempts", models.PositiveIntegerField(default=0)),
                (
                    "last_failed_attempt_at",
                    models.DateTimeField(blank=True, null=True),
                ),
                (
                    "lock_until",
                    models.DateTimeField(
                        blank=True,
                        help_text="Temporary lock after too many failed attempts",
                        null=True,
                    ),
                ),
                (
                    "last_changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "restaurant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="security_settings",
                        to="restaurants.restaurant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Security Setting",
                "verbose_name_plural": "Security Settings",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("restaurant", "setting_type"),
                        name="unique_security_setting_per_restaurant",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="SecurityCodeChange",
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
                ("previous_hash", models.CharField(max_length=255)),
                (
                    "reason",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "changed_by",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "setting",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="changes",
                        to="payments.securitysetting",
                    ),
                ),
            ],
            options={
                "verbose_name": "Security Code Change",
                "verbose_name_plural": "Security Code Changes",
                "ordering": ["-created_at"],
            },
        ),
    ]
