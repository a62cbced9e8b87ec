# Generated manually - initial schema for escrow payments, disputes and webhook events

import uuid

import django.db.models.deletion
import django.db.models.expressions
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="EscrowPayment",
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
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Flexible key-value metadata storage"),
                ),
                (
                    "version",
                    models.PositiveIntegerField(default=1, help_text="Version number for optimistic locking"),
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
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Service price in smallest currency unit (e.g., cents)"
                    ),
                ),
                (
                    "platform_fee_cents",
                    models.PositiveBigIntegerField(help_text="Platform fee in smallest currency unit"),
                ),
                (
                    "total_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount charged to the customer (amount + platform fee)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(default="usd", help_text="ISO 4217 currency code (lowercase)", max_length=3),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("released", "Released"),
                            ("refunded", "Refunded"),
                            ("disputed", "Disputed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current custody state (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "provider_name",
                    models.CharField(
                        blank=True,
                        choices=[("stripe", "Stripe"), ("paystack", "Paystack")],
                        help_text="Payment gateway that processed the payment",
                        max_length=20,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(blank=True, help_text="Gateway payment method (e.g., 'card')", max_length=50),
                ),
                (
                    "external_reference",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Gateway checkout session or payment intent ID",
                        max_length=255,
                    ),
                ),
                (
                    "external_reason",
                    models.CharField(
                        blank=True,
                        help_text="Why the payment was created already completed (out-of-band settlement)",
                        max_length=255,
                    ),
                ),
                ("refund_reason", models.TextField(blank=True, help_text="Reason given for the refund")),
                (
                    "completed_at",
                    models.DateTimeField(blank=True, help_text="When funds were captured into escrow", null=True),
                ),
                (
                    "released_at",
                    models.DateTimeField(
                        blank=True, help_text="When funds were released to the provider", null=True
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(blank=True, help_text="When the payment was refunded", null=True),
                ),
                (
                    "disputed_at",
                    models.DateTimeField(blank=True, help_text="When a dispute froze the payment", null=True),
                ),
                (
                    "release_date",
                    models.DateTimeField(
                        blank=True, help_text="Earliest date funds are expected to be released", null=True
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        help_text="Booking this payment belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.booking",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="User paying for the booking",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_payments_made",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="User receiving the funds on release",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_payments_received",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        help_text="Service that was booked",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.service",
                    ),
                ),
            ],
            options={
                "verbose_name": "Escrow Payment",
                "verbose_name_plural": "Escrow Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["booking", "status"], name="payments_es_booking_3a7c21_idx"),
                    models.Index(fields=["status", "created_at"], name="payments_es_status_8e41b0_idx"),
                    models.Index(
                        fields=["provider_name", "external_reference"],
                        name="payments_es_provide_d52f96_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("amount_cents__gt", 0)),
                        name="escrow_payment_amount_positive",
                    ),
                    models.CheckConstraint(
                        check=models.Q(
                            (
                                "total_amount_cents",
                                django.db.models.expressions.CombinedExpression(
                                    models.F("amount_cents"), "+", models.F("platform_fee_cents")
                                ),
                            )
                        ),
                        name="escrow_payment_total_matches",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["pending", "completed", "disputed"])),
                        fields=("booking",),
                        name="escrow_payment_one_live_per_booking",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
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
                    "provider",
                    models.CharField(
                        choices=[("stripe", "Stripe"), ("paystack", "Paystack")],
                        help_text="Gateway that sent the event",
                        max_length=20,
                    ),
                ),
                (
                    "event_id",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event ID - unique per provider for idempotency",
                        max_length=255,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event type (e.g., 'checkout.session.completed')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload (JSON)")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(blank=True, help_text="When event was successfully processed", null=True),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Error message if processing failed", null=True),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(default=0, help_text="Number of processing attempts"),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_we_status_1f6b3e_idx"),
                    models.Index(fields=["status", "retry_count"], name="payments_we_status_c07a95_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("provider", "event_id"),
                        name="webhook_event_unique_per_provider",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Dispute",
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
                ("reason", models.CharField(help_text="Short reason for the dispute", max_length=255)),
                (
                    "description",
                    models.TextField(blank=True, help_text="Detailed description of the problem"),
                ),
                (
                    "evidence_url",
                    models.URLField(blank=True, help_text="Link to supporting evidence"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("resolved", "Resolved")],
                        db_index=True,
                        default="open",
                        help_text="Dispute status",
                        max_length=20,
                    ),
                ),
                (
                    "resolution",
                    models.CharField(
                        blank=True,
                        choices=[("release", "Release to provider"), ("refund", "Refund to customer")],
                        help_text="Outcome chosen by the resolving operator",
                        max_length=20,
                    ),
                ),
                (
                    "resolution_note",
                    models.TextField(blank=True, help_text="Operator's note on the resolution"),
                ),
                (
                    "resolved_at",
                    models.DateTimeField(blank=True, help_text="When the dispute was resolved", null=True),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        help_text="Booking the disputed payment belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes",
                        to="bookings.booking",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        help_text="Party that opened the dispute",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes_opened",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="Customer of the disputed booking",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes_as_customer",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        help_text="Disputed escrow payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes",
                        to="payments.escrowpayment",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider of the disputed booking",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes_as_provider",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Operator that resolved the dispute",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disputes_resolved",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Dispute",
                "verbose_name_plural": "Disputes",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_di_status_5b9e08_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "open")),
                        fields=("payment",),
                        name="dispute_one_open_per_payment",
                    ),
                ],
            },
        ),
    ]
