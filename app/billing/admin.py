"""
Billing admin configuration.

State changes go through the services and webhook handlers, so status
fields are read-only here. Webhook events and history are audit data and
cannot be added or deleted.
"""

from django.contrib import admin, messages

from billing.models import (
    FinanceRecord,
    GatewayConfiguration,
    Subscription,
    SubscriptionHistory,
    SubscriptionPayment,
    WebhookEvent,
)
from billing.webhooks.reconciler import reconcile_webhook_event


class SubscriptionPaymentInline(admin.TabularInline):
    model = SubscriptionPayment
    extra = 0
    can_delete = False
    fields = ["external_payment_id", "amount", "status", "due_date", "paid_date", "retry_count"]
    readonly_fields = fields
    show_change_link = True


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Subscription.
    """

    list_display = [
        "id",
        "client",
        "subscription_type",
        "amount",
        "payment_method",
        "status",
        "next_due_date",
        "created_at",
    ]
    list_filter = ["status", "subscription_type", "payment_method", "created_at"]
    search_fields = [
        "id",
        "external_subscription_id",
        "external_customer_id",
        "client__name",
        "owner__email",
    ]
    raw_id_fields = ["client", "owner"]
    readonly_fields = [
        "id",
        "status",
        "external_subscription_id",
        "external_customer_id",
        "idempotency_key",
        "card_last_four",
        "card_holder_name",
        "cancelled_at",
        "synced_at",
        "created_at",
        "updated_at",
    ]
    inlines = [SubscriptionPaymentInline]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "client", "owner", "status", "description"),
            },
        ),
        (
            "Plan",
            {
                "fields": (
                    "subscription_type",
                    "billing_cycle",
                    "amount",
                    "billing_day",
                    "auto_renew",
                    "start_date",
                    "next_due_date",
                ),
            },
        ),
        (
            "Payment Method",
            {
                "fields": ("payment_method", "card_last_four", "card_holder_name"),
            },
        ),
        (
            "Gateway",
            {
                "fields": (
                    "external_customer_id",
                    "external_subscription_id",
                    "idempotency_key",
                    "synced_at",
                ),
            },
        ),
        (
            "Cancellation",
            {
                "fields": ("cancelled_at", "cancellation_reason"),
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


@admin.register(SubscriptionPayment)
class SubscriptionPaymentAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "subscription",
        "external_payment_id",
        "amount",
        "status",
        "due_date",
        "paid_date",
        "retry_count",
    ]
    list_filter = ["status", "payment_method", "due_date"]
    search_fields = ["id", "external_payment_id", "subscription__external_subscription_id"]
    raw_id_fields = ["subscription"]
    readonly_fields = ["id", "status", "external_payment_id", "created_at", "updated_at"]
    date_hierarchy = "due_date"
    ordering = ["-due_date"]


@admin.register(FinanceRecord)
class FinanceRecordAdmin(admin.ModelAdmin):
    list_display = ["id", "owner", "type", "amount", "status", "payment_date", "reference_month"]
    list_filter = ["type", "status", "category", "reference_month"]
    search_fields = ["id", "description", "subscription_payment__external_payment_id"]
    raw_id_fields = ["owner", "client", "subscription_payment"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(GatewayConfiguration)
class GatewayConfigurationAdmin(admin.ModelAdmin):
    """
    Admin configuration for GatewayConfiguration.

    The stored API key is never listed; has_api_key shows whether one is set.
    """

    list_display = [
        "id",
        "owner",
        "environment",
        "is_active",
        "has_api_key",
        "secret_name",
        "max_retry_attempts",
        "retry_interval_days",
        "auto_retry_failed_payments",
    ]
    list_filter = ["environment", "is_active", "auto_retry_failed_payments"]
    search_fields = ["id", "owner__email", "secret_name"]
    raw_id_fields = ["owner"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]

    @admin.display(boolean=True, description="API key")
    def has_api_key(self, obj) -> bool:
        return bool(obj.api_key)


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into reconciliation status. The received content
    is immutable; unprocessed events can be reconciled again from here.
    """

    list_display = [
        "id",
        "event_type",
        "external_event_id",
        "processed",
        "attempts",
        "processed_at",
        "created_at",
    ]
    list_filter = ["processed", "event_type", "created_at"]
    search_fields = ["id", "external_event_id", "event_type"]
    readonly_fields = [
        "id",
        "event_type",
        "external_event_id",
        "payload",
        "processed",
        "processed_at",
        "error_message",
        "attempts",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["reprocess_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "event_type", "external_event_id", "processed"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "attempts"),
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

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False

    @admin.action(description="Reprocess selected events")
    def reprocess_events(self, request, queryset):
        processed = failed = 0
        for webhook_event in queryset.filter(processed=False):
            outcome = reconcile_webhook_event(webhook_event)
            if outcome.processed:
                processed += 1
            else:
                failed += 1
        self.message_user(
            request,
            f"Reprocessed {processed + failed} events: {processed} processed, {failed} still failing.",
            messages.SUCCESS if not failed else messages.WARNING,
        )


@admin.register(SubscriptionHistory)
class SubscriptionHistoryAdmin(admin.ModelAdmin):
    """
    Read-only view of the subscription audit trail.
    """

    list_display = ["id", "subscription", "event_type", "description", "actor", "created_at"]
    list_filter = ["event_type", "created_at"]
    search_fields = ["subscription__id", "external_event_id", "description"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
