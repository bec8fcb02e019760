from django.contrib import admin

from orders.models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ["name", "quantity", "unit_price", "special_instructions"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-mostly admin: FSM fields and amounts are changed through
    OrderService, never edited here.
    """

    list_display = [
        "order_number",
        "restaurant",
        "status",
        "payment_status",
        "payment_method",
        "total_amount",
        "amount_paid_with_charges",
        "withdrawn",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "payment_method", "withdrawn"]
    search_fields = ["order_number", "payment_transaction_id", "customer_phone"]
    readonly_fields = [
        "order_number",
        "status",
        "payment_status",
        "total_amount",
        "amount_paid_with_charges",
        "paid_at",
        "withdrawn",
        "withdrawal_batch",
        "is_eligible_for_withdrawal",
        "payment_transaction_id",
        "payment_captured_amount",
        "payment_provider_status",
        "payment_recorded_at",
        "payment_metadata",
        "version",
    ]
    inlines = [OrderItemInline]
