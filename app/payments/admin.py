"""
Payment admin configuration.

Withdrawal batches and webhook events are audit records: they can be
inspected but not added or deleted through the admin. A batch whose payout
was never confirmed can be cancelled, which releases its orders. Security
settings never expose the code hash.
"""

from django.contrib import admin

from core.exceptions import ConflictError
from payments.models import (
    PaymentWithdrawal,
    SecurityCodeChange,
    SecuritySetting,
    WebhookEvent,
)
from payments.state_machines import WebhookEventStatus, WithdrawalStatus

__all__ = [
    "PaymentWithdrawalAdmin",
    "SecuritySettingAdmin",
    "WebhookEventAdmin",
]


@admin.register(PaymentWithdrawal)
class PaymentWithdrawalAdmin(admin.ModelAdmin):
    list_display = [
        "withdrawal_number",
        "restaurant",
        "payment_method",
        "withdrawal_date",
        "order_count",
        "amount_display",
        "net_profit",
        "status",
        "authorized_by",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "withdrawal_date"]
    search_fields = ["id", "withdrawal_number", "restaurant__name", "transaction_id"]
    readonly_fields = [
        "id",
        "withdrawal_number",
        "restaurant",
        "payment_method",
        "withdrawal_date",
        "order_count",
        "withdrawal_amount",
        "customer_charges",
        "withdrawal_fee",
        "fee_percent",
        "net_profit",
        "authorized_by",
        "authorized_role",
        "custom_role",
        "security_check_outcome",
        "authorized_at",
        "status",
        "processed_at",
        "completed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "withdrawal_date"
    ordering = ["-created_at"]
    actions = ["cancel_and_release"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "withdrawal_number",
                    "restaurant",
                    "payment_method",
                    "withdrawal_date",
                    "status",
                ),
            },
        ),
        (
            "Amounts",
            {
                "fields": (
                    "order_count",
                    "withdrawal_amount",
                    "customer_charges",
                    "withdrawal_fee",
                    "fee_percent",
                    "net_profit",
                ),
            },
        ),
        (
            "Authorization",
            {
                "fields": (
                    "authorized_by",
                    "authorized_role",
                    "custom_role",
                    "security_check_outcome",
                    "authorized_at",
                ),
            },
        ),
        (
            "Payout",
            {
                "fields": ("payment_phone_number", "transaction_id", "notes", "failure_reason"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("processed_at", "completed_at", "created_at", "updated_at"),
            },
        ),
    )

    def amount_display(self, obj: PaymentWithdrawal) -> str:
        return f"{obj.withdrawal_amount} XAF"

    amount_display.short_description = "Amount"

    @admin.action(description="Cancel selected processing withdrawals and release their orders")
    def cancel_and_release(self, request, queryset):
        from payments.services import WithdrawalService

        cancelled = 0
        for batch in queryset.filter(
            status__in=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING]
        ):
            try:
                WithdrawalService.cancel(batch, reason=f"Cancelled by {request.user}")
            except ConflictError:
                continue
            cancelled += 1
        self.message_user(request, f"Cancelled {cancelled} withdrawals.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for withdrawals (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Withdrawals are only created through the settlement flow."""
        return False


class SecurityCodeChangeInline(admin.TabularInline):
    model = SecurityCodeChange
    extra = 0
    fields = ["changed_by", "reason", "created_at"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(SecuritySetting)
class SecuritySettingAdmin(admin.ModelAdmin):
    list_display = [
        "restaurant",
        "setting_type",
        "is_active",
        "failed_attempts",
        "lock_until",
        "updated_at",
    ]
    list_filter = ["setting_type", "is_active"]
    search_fields = ["restaurant__name"]
    exclude = ["code_hash"]
    readonly_fields = [
        "restaurant",
        "setting_type",
        "failed_attempts",
        "last_failed_attempt_at",
        "last_changed_by",
        "created_at",
        "updated_at",
    ]
    inlines = [SecurityCodeChangeInline]
    actions = ["unlock"]

    @admin.action(description="Clear lockout for selected restaurants")
    def unlock(self, request, queryset):
        count = queryset.update(failed_attempts=0, lock_until=None)
        self.message_user(request, f"Unlocked {count} security settings.")

    def has_add_permission(self, request) -> bool:
        """Codes are provisioned by restaurant staff through the API."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Orphaned and failed events can be queued for reprocessing.
    """

    list_display = [
        "id",
        "provider_event_id",
        "event_type",
        "provider_status",
        "reference",
        "status",
        "signature_valid",
        "delivery_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "signature_valid", "event_type", "created_at"]
    search_fields = ["id", "provider_event_id", "reference"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "provider_event_id",
        "event_type",
        "provider_status",
        "reference",
        "signature_valid",
        "order",
        "delivery_count",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["reprocess"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "provider_event_id",
                    "event_type",
                    "provider_status",
                    "reference",
                    "status",
                    "signature_valid",
                    "order",
                ),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "delivery_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Reprocess selected orphaned or failed events")
    def reprocess(self, request, queryset):
        from payments.tasks import reprocess_webhook_event

        events = queryset.filter(
            signature_valid=True,
            status__in=[WebhookEventStatus.ORPHANED, WebhookEventStatus.FAILED],
        )
        count = 0
        for event in events:
            reprocess_webhook_event.delay(str(event.id))
            count += 1
        self.message_user(request, f"Queued {count} events for reprocessing.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
