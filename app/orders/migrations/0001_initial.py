import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django_fsm
from django.db import migrations, models

import orders.models.order


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("payments", "0001_initial"),
        ("restaurants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
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
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version, incremented on each save",
                    ),
                ),
                (
                    "order_number",
                    models.CharField(
                        default=orders.models.order.generate_order_number,
                        editable=False,
                        help_text="Public order number (ORD-<timestamp>-<random>)",
                        max_length=40,
                        unique=True,
                    ),
                ),
                (
                    "order_type",
                    models.CharField(
                        choices=[
                            ("dine-in", "Dine-in"),
                            ("takeaway", "Takeaway"),
                            ("delivery", "Delivery"),
                        ],
                        default="dine-in",
                        help_text="Dine-in, takeaway or delivery",
                        max_length=20,
                    ),
                ),
                (
                    "customer_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Customer name as given at ordering time",
                        max_length=200,
                    ),
                ),
                (
                    "customer_phone",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Customer phone number",
                        max_length=32,
                    ),
                ),
                (
                    "customer_email",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="Customer email address",
                        max_length=254,
                    ),
                ),
                (
                    "customer_notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Free-form notes from the customer",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("preparing", "Preparing"),
                            ("ready", "Ready"),
                            ("served", "Served"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Lifecycle status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Payment status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Sum of line item price x quantity, fixed at creation",
                        max_digits=12,
                    ),
                ),
                (
                    "amount_paid_with_charges",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount captured from the customer, including service charges",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("MTN MoMo", "MTN MoMo"),
                            ("Orange Money", "Orange Money"),
                            ("Pay at Counter", "Pay at Counter"),
                            ("cash", "Cash"),
                            ("card", "Card"),
                            ("bank_transfer", "Bank transfer"),
                            ("wallet", "Wallet"),
                            ("other", "Other"),
                        ],
                        db_index=True,
                        default="",
                        help_text="Payment method chosen by the customer or reported by the provider",
                        max_length=32,
                    ),
                ),
                (
                    "payment_transaction_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Provider transaction id of the last payment attempt",
                        max_length=255,
                    ),
                ),
                (
                    "payment_phone_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Mobile-money number that paid",
                        max_length=32,
                    ),
                ),
                (
                    "payment_captured_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount reported by the provider for the last attempt",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "payment_provider_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="",
                        help_text="Status of the last payment attempt",
                        max_length=20,
                    ),
                ),
                (
                    "payment_provider",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Provider or actor that recorded the payment",
                        max_length=50,
                    ),
                ),
                (
                    "payment_currency",
                    models.CharField(
                        default="XAF",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "payment_recorded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Provider timestamp of the last payment attempt",
                        null=True,
                    ),
                ),
                (
                    "payment_notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Failure reasons and staff notes about the payment",
                    ),
                ),
                (
                    "payment_metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Provider metadata for the last payment attempt",
                    ),
                ),
                (
                    "withdrawn",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether the service charge was settled in a withdrawal",
                    ),
                ),
                (
                    "is_eligible_for_withdrawal",
                    models.BooleanField(
                        default=False,
                        help_text="Paid by mobile money with a positive service charge",
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the order first became paid",
                        null=True,
                    ),
                ),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("served_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "restaurant",
                    models.ForeignKey(
                        help_text="Restaurant this order belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="restaurants.restaurant",
                    ),
                ),
                (
                    "table",
                    models.ForeignKey(
                        blank=True,
                        help_text="Table the order was placed from, if any",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="restaurants.table",
                    ),
                ),
                (
                    "withdrawal_batch",
                    models.ForeignKey(
                        blank=True,
                        help_text="Withdrawal batch that settled this order",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="payments.paymentwithdrawal",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["restaurant", "status"],
                        name="order_restaurant_status_idx",
                    ),
                    models.Index(
                        fields=["restaurant", "payment_status", "withdrawn", "created_at"],
                        name="order_withdrawal_lookup_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gte", 0)),
                        name="order_total_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount_paid_with_charges__gte", 0),
                            ("amount_paid_with_charges__isnull", True),
                            _connector="OR",
                        ),
                        name="order_paid_amount_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
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
                    "position",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Position of the line within the order",
                    ),
                ),
                (
                    "menu_item_id",
                    models.UUIDField(
                        blank=True,
                        help_text="Menu item reference",
                        null=True,
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        help_text="Menu item name at ordering time",
                        max_length=200,
                    ),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        help_text="Units ordered",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Unit price snapshotted at ordering time",
                        max_digits=12,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0"))
                        ],
                    ),
                ),
                (
                    "special_instructions",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Customer note for this line",
                        max_length=500,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        help_text="Order this line belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order item",
                "verbose_name_plural": "Order items",
                "ordering": ["order", "position"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="order_item_quantity_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_price__gte", 0)),
                        name="order_item_price_non_negative",
                    ),
                ],
            },
        ),
    ]
