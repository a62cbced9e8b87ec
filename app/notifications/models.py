"""
Notification models.

Notifications are observational: they tell a party that a booking or
payment changed, and are never read back by the lifecycle services.

Audiences:
    USER: A single recipient (customer or provider)
    OPERATORS: The operator channel (staff inbox plus alert email)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel


class NotificationAudience(models.TextChoices):
    USER = "user", "User"
    OPERATORS = "operators", "Operators"


class NotificationType(models.TextChoices):
    """Lifecycle events a notification can describe."""

    BOOKING_REQUESTED = "booking_requested", "Booking requested"
    BOOKING_CONFIRMED = "booking_confirmed", "Booking confirmed"
    BOOKING_DECLINED = "booking_declined", "Booking declined"
    BOOKING_CANCELLED = "booking_cancelled", "Booking cancelled"
    SERVICE_DELIVERED = "service_delivered", "Service delivered"
    PAYMENT_RECEIVED = "payment_received", "Payment received"
    PAYMENT_RELEASED = "payment_released", "Payment released"
    PAYMENT_REFUNDED = "payment_refunded", "Payment refunded"
    DISPUTE_OPENED = "dispute_opened", "Dispute opened"
    DISPUTE_RESOLVED = "dispute_resolved", "Dispute resolved"
    VERIFICATION_UPDATED = "verification_updated", "Verification updated"
    OPERATOR_ALERT = "operator_alert", "Operator alert"


class Notification(BaseModel):
    """
    Individual notification record.

    Fields:
        audience: USER (recipient set) or OPERATORS (recipient empty)
        recipient: User receiving the notification
        actor: Optional user who triggered the notification
        notification_type: Lifecycle event
        title: Short title
        message: Rendered message body
        payload: JSON context (booking_id, payment_id, ...)
        is_read / read_at: Read state
        idempotency_key: Prevents duplicates on webhook replays

    Note:
        - recipient CASCADE: Notifications deleted when user deleted
        - actor SET_NULL: Notification preserved when actor deleted
    """

    audience = models.CharField(
        max_length=20,
        choices=NotificationAudience.choices,
        default=NotificationAudience.USER,
        db_index=True,
        help_text="Single user or the operator channel",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
        help_text="User receiving this notification (empty for operator notifications)",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="triggered_notifications",
        help_text="User who triggered this notification (optional)",
    )
    notification_type = models.CharField(
        max_length=40,
        choices=NotificationType.choices,
        db_index=True,
        help_text="Lifecycle event this notification describes",
    )
    title = models.CharField(
        max_length=255,
        blank=True,
        help_text="Short notification title",
    )
    message = models.TextField(
        help_text="Notification message",
    )
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Context data (booking_id, payment_id, dispute_id)",
    )
    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the recipient has read this notification",
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the notification was read",
    )
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
            models.Index(
                fields=["audience", "-created_at"],
                name="notif_audience_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
            models.CheckConstraint(
                check=(
                    models.Q(audience=NotificationAudience.USER, recipient__isnull=False)
                    | models.Q(
                        audience=NotificationAudience.OPERATORS, recipient__isnull=True
                    )
                ),
                name="notif_recipient_matches_audience",
            ),
        ]

    def __str__(self) -> str:
        target = (
            "operators"
            if self.audience == NotificationAudience.OPERATORS
            else f"User {self.recipient_id}"
        )
        return f"Notification({self.notification_type}) -> {target}"

    def mark_read(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.is_read = True
        self.read_at = timezone.now()
