# Generated manually - initial schema for the service catalog and bookings

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Service",
            fields=[
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
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(help_text="Service title", max_length=200)),
                ("description", models.TextField(blank=True, help_text="Service description")),
                (
                    "price_cents",
                    models.PositiveBigIntegerField(
                        help_text="Base price in smallest currency unit (e.g., cents)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(default="usd", help_text="ISO 4217 currency code (lowercase)", max_length=3),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True, default=True, help_text="Whether the service can currently be booked"
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="User who performs this service",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="services",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Service",
                "verbose_name_plural": "Services",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("price_cents__gt", 0)),
                        name="service_price_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
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
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(default=1, help_text="Version number for optimistic locking"),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("pending_completion", "Pending Completion"),
                            ("completed", "Completed"),
                            ("disputed", "Disputed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current booking status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("unpaid", "Unpaid"),
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("released", "Released"),
                            ("refunded", "Refunded"),
                            ("disputed", "Disputed"),
                        ],
                        default="unpaid",
                        help_text="Mirror of the linked escrow payment status",
                        max_length=20,
                    ),
                ),
                (
                    "notes",
                    models.TextField(
                        blank=True, help_text="Schedule, location or other details from the customer"
                    ),
                ),
                (
                    "cancellation_reason",
                    models.TextField(
                        blank=True,
                        help_text="Reason given when the booking was declined, cancelled or refunded",
                    ),
                ),
                (
                    "completion_feedback",
                    models.TextField(
                        blank=True, help_text="Feedback left by the customer when confirming completion"
                    ),
                ),
                (
                    "confirmed_at",
                    models.DateTimeField(blank=True, help_text="When the provider confirmed the booking", null=True),
                ),
                (
                    "delivered_at",
                    models.DateTimeField(
                        blank=True, help_text="When the provider marked the service delivered", null=True
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(blank=True, help_text="When the booking completed", null=True),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(blank=True, help_text="When the booking was cancelled", null=True),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="User who requested the booking",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings_as_customer",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="User who performs the service",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings_as_provider",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        help_text="Service being booked",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.service",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["customer", "status"], name="bookings_bo_custome_4b1f0e_idx"),
                    models.Index(fields=["provider", "status"], name="bookings_bo_provide_9c2d7a_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["pending", "confirmed", "pending_completion"])),
                        fields=("service", "customer"),
                        name="booking_one_active_per_service_customer",
                    ),
                ],
            },
        ),
    ]
