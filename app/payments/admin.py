"""
Payment admin configuration.

Escrow payments, disputes and webhook events are read-only in the admin.
Money only moves through the services, so the admin never writes status.
"""

from django.contrib import admin

from payments.models import Dispute, EscrowPayment, WebhookEvent


class ReadOnlyAdminMixin:
    """Disable add and change in the admin."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(EscrowPayment)
class EscrowPaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for EscrowPayment.

    Provides visibility into custody state and gateway references.
    """

    list_display = [
        "id",
        "booking",
        "status",
        "total_amount_cents",
        "currency",
        "provider_name",
        "external_reference",
        "created_at",
    ]
    list_filter = ["status", "provider_name", "currency", "created_at"]
    search_fields = ["id", "booking__id", "external_reference", "customer__email"]
    raw_id_fields = ["booking", "service", "customer", "provider"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "booking", "service", "customer", "provider", "status", "version"),
            },
        ),
        (
            "Amounts",
            {
                "fields": ("amount_cents", "platform_fee_cents", "total_amount_cents", "currency"),
            },
        ),
        (
            "Gateway",
            {
                "fields": ("provider_name", "payment_method", "external_reference", "metadata"),
            },
        ),
        (
            "Audit",
            {
                "fields": ("external_reason", "refund_reason"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "completed_at",
                    "released_at",
                    "refunded_at",
                    "disputed_at",
                    "release_date",
                    "created_at",
                    "updated_at",
                ),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(Dispute)
class DisputeAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Disputes are resolved through the API so both rows move together."""

    list_display = ["id", "booking", "status", "resolution", "created_by", "created_at", "resolved_at"]
    list_filter = ["status", "resolution", "created_at"]
    search_fields = ["id", "booking__id", "reason", "customer__email", "provider__email"]
    raw_id_fields = ["payment", "booking", "created_by", "customer", "provider", "resolved_by"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "provider",
        "event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["provider", "status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "event_type"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "provider", "event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
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
    )
