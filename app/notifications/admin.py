"""
Django admin configuration for notification models.

Operator-channel notifications have no recipient; the admin is where
staff read them.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Read-only view of notifications for support and the operator channel.
    """

    list_display = [
        "id",
        "audience",
        "notification_type",
        "recipient",
        "title",
        "is_read",
        "created_at",
    ]
    list_filter = ["audience", "is_read", "notification_type", "created_at"]
    search_fields = ["title", "message", "recipient__email", "idempotency_key"]
    ordering = ["-created_at"]
    readonly_fields = [
        "audience",
        "notification_type",
        "recipient",
        "actor",
        "title",
        "message",
        "payload",
        "idempotency_key",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["recipient", "actor"]
