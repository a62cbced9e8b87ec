# Generated manually - initial schema for notifications

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "audience",
                    models.CharField(
                        choices=[("user", "User"), ("operators", "Operators")],
                        db_index=True,
                        default="user",
                        help_text="Single user or the operator channel",
                        max_length=20,
                    ),
                ),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("booking_requested", "Booking requested"),
                            ("booking_confirmed", "Booking confirmed"),
                            ("booking_declined", "Booking declined"),
                            ("booking_cancelled", "Booking cancelled"),
                            ("service_delivered", "Service delivered"),
                            ("payment_received", "Payment received"),
                            ("payment_released", "Payment released"),
                            ("payment_refunded", "Payment refunded"),
                            ("dispute_opened", "Dispute opened"),
                            ("dispute_resolved", "Dispute resolved"),
                            ("verification_updated", "Verification updated"),
                            ("operator_alert", "Operator alert"),
                        ],
                        db_index=True,
                        help_text="Lifecycle event this notification describes",
                        max_length=40,
                    ),
                ),
                ("title", models.CharField(blank=True, help_text="Short notification title", max_length=255)),
                ("message", models.TextField(help_text="Notification message")),
                (
                    "payload",
                    models.JSONField(
                        blank=True, default=dict, help_text="Context data (booking_id, payment_id, dispute_id)"
                    ),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        db_index=True, default=False, help_text="Whether the recipient has read this notification"
                    ),
                ),
                (
                    "read_at",
                    models.DateTimeField(blank=True, help_text="When the notification was read", null=True),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Idempotency key to prevent duplicate notifications",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who triggered this notification (optional)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="triggered_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        blank=True,
                        help_text="User receiving this notification (empty for operator notifications)",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "is_read", "-created_at"],
                        name="notif_recipient_unread_idx",
                    ),
                    models.Index(fields=["audience", "-created_at"], name="notif_audience_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key__isnull", False)),
                        fields=("idempotency_key",),
                        name="notif_idempotency_key_unique",
                    ),
                    models.CheckConstraint(
                        check=models.Q(
                            models.Q(("audience", "user"), ("recipient__isnull", False)),
                            models.Q(("audience", "operators"), ("recipient__isnull", True)),
                            _connector="OR",
                        ),
                        name="notif_recipient_matches_audience",
                    ),
                ],
            },
        ),
    ]
