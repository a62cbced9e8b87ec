"""
Dispute model: a contested escrow payment.

A dispute is opened only from a completed payment. While it is open the
payment and the booking are both frozen in the disputed state. An
operator resolves it through payments.services.DisputeResolver.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import DisputeResolution, DisputeStatus


class Dispute(UUIDPrimaryKeyMixin, BaseModel):
    """
    A contested escrow payment.

    Fields:
        payment: Disputed escrow payment
        booking: Booking the payment belongs to
        created_by: Party that opened the dispute
        customer/provider: Both parties, copied from the booking
        reason: Short reason
        description: Free-text description
        evidence_url: Optional link to supporting evidence
        status: open or resolved
        resolution: release or refund, set when resolved
        resolution_note: Operator's note
        resolved_by: Operator that resolved the dispute
        resolved_at: When the dispute was resolved
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payment = models.ForeignKey(
        "payments.EscrowPayment",
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Disputed escrow payment",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Booking the disputed payment belongs to",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disputes_opened",
        help_text="Party that opened the dispute",
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disputes_as_customer",
        help_text="Customer of the disputed booking",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disputes_as_provider",
        help_text="Provider of the disputed booking",
    )

    # ==========================================================================
    # Claim
    # ==========================================================================

    reason = models.CharField(
        max_length=255,
        help_text="Short reason for the dispute",
    )
    description = models.TextField(
        blank=True,
        help_text="Detailed description of the problem",
    )
    evidence_url = models.URLField(
        blank=True,
        help_text="Link to supporting evidence",
    )

    # ==========================================================================
    # Resolution
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=DisputeStatus.choices,
        default=DisputeStatus.OPEN,
        db_index=True,
        help_text="Dispute status",
    )
    resolution = models.CharField(
        max_length=20,
        choices=DisputeResolution.choices,
        blank=True,
        help_text="Outcome chosen by the resolving operator",
    )
    resolution_note = models.TextField(
        blank=True,
        help_text="Operator's note on the resolution",
    )
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="disputes_resolved",
        help_text="Operator that resolved the dispute",
    )
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the dispute was resolved",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Dispute"
        verbose_name_plural = "Disputes"
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["payment"],
                condition=models.Q(status=DisputeStatus.OPEN),
                name="dispute_one_open_per_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"Dispute({self.id}, {self.status})"

    @property
    def is_open(self) -> bool:
        return self.status == DisputeStatus.OPEN

    def mark_resolved(self, resolution: str, resolver, note: str = "") -> None:
        """
        Record the resolution.

        Note: Does not save - caller must save after calling.
        """
        self.status = DisputeStatus.RESOLVED
        self.resolution = resolution
        self.resolution_note = note
        self.resolved_by = resolver
        self.resolved_at = timezone.now()
