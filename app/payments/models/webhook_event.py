"""
WebhookEvent model for inbound gateway event tracking.

Every verified webhook is stored before it is processed. The unique
(provider, event_id) constraint turns duplicate deliveries into no-ops.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        provider="stripe",
        event_id="evt_1234567890",
        defaults={"event_type": "checkout.session.completed", "payload": payload},
    )
    if not created and event.is_processed:
        return HttpResponse(status=200)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentProvider, WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks gateway webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, signature verified by the provider adapter
        2. get_or_create on (provider, event_id)
        3. Existing and processed -> 200 (duplicate)
        4. Otherwise queue process_webhook_event
        5. Task marks PROCESSING, dispatches, marks PROCESSED or FAILED

    Fields:
        provider: Gateway that sent the event
        event_id: Gateway event id (unique per provider)
        event_type: Gateway event type
        payload: Full JSON payload
        status: Processing status
        processed_at: When the event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        help_text="Gateway that sent the event",
    )
    event_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Gateway event ID - unique per provider for idempotency",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'checkout.session.completed')",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook payload (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )
    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )
    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["status", "retry_count"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "event_id"],
                name="webhook_event_unique_per_provider",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider}:{self.event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Failed events below the retry cap may be re-queued."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < settings.WEBHOOK_MAX_RETRIES
        )

    def mark_processing(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
