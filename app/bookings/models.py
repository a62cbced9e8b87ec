"""
Service catalog and Booking models.

Booking status is a django-fsm field. Transitions on the model only
describe which moves are structurally possible; who may trigger them and
how the escrow payment moves alongside is decided in
bookings.services.BookingService and payments.services.EscrowLedger.

Usage:
    from bookings.models import Booking, BookingStatus

    booking.confirm()                      # pending -> confirmed
    save_versioned(booking)                # conditional UPDATE on version
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.state_machines import EscrowStatus


class BookingStatus(models.TextChoices):
    """
    Booking lifecycle states.

    State Flow:
        PENDING → CONFIRMED → PENDING_COMPLETION → COMPLETED
        PENDING_COMPLETION → DISPUTED → COMPLETED | CANCELLED (resolution)
        PENDING | CONFIRMED | PENDING_COMPLETION → CANCELLED

    Terminal states: COMPLETED, CANCELLED
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PENDING_COMPLETION = "pending_completion", "Pending Completion"
    COMPLETED = "completed", "Completed"
    DISPUTED = "disputed", "Disputed"
    CANCELLED = "cancelled", "Cancelled"

    @classmethod
    def active_states(cls) -> list[str]:
        """States that block a second booking for the same service and customer."""
        return [cls.PENDING, cls.CONFIRMED, cls.PENDING_COMPLETION]


class BookingPaymentStatus(models.TextChoices):
    """Mirror of the linked EscrowPayment status, UNPAID when there is none."""

    UNPAID = "unpaid", "Unpaid"
    PENDING = EscrowStatus.PENDING.value, "Pending"
    COMPLETED = EscrowStatus.COMPLETED.value, "Completed"
    RELEASED = EscrowStatus.RELEASED.value, "Released"
    REFUNDED = EscrowStatus.REFUNDED.value, "Refunded"
    DISPUTED = EscrowStatus.DISPUTED.value, "Disputed"


class Service(UUIDPrimaryKeyMixin, BaseModel):
    """
    An offering listed by a provider.

    Fields:
        provider: User who performs the service
        title: Short name shown in the catalog
        description: Free-text details
        price_cents: Base price in minor units, before the platform fee
        currency: ISO 4217 currency code (lowercase)
        is_active: Inactive services cannot be booked
    """

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="services",
        help_text="User who performs this service",
    )
    title = models.CharField(
        max_length=200,
        help_text="Service title",
    )
    description = models.TextField(
        blank=True,
        help_text="Service description",
    )
    price_cents = models.PositiveBigIntegerField(
        help_text="Base price in smallest currency unit (e.g., cents)",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the service can currently be booked",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Service"
        verbose_name_plural = "Services"
        constraints = [
            models.CheckConstraint(
                check=models.Q(price_cents__gt=0),
                name="service_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.price_cents / 100:.2f} {self.currency.upper()})"


class Booking(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A customer's request for a provider to perform a service.

    Status moves together with the linked EscrowPayment. Every write goes
    through payments.locks.save_versioned inside the transaction that also
    writes the payment, so the pair never diverges.

    Fields:
        service: Booked service
        customer: User who requested the booking
        provider: User performing the service (copied from the service)
        status: Current FSM state
        payment_status: Mirror of the escrow payment status
        notes: Free-text schedule or location details
        cancellation_reason: Why the booking was cancelled or declined
        completion_feedback: Optional feedback left when confirming completion
        version: Optimistic locking version
        *_at timestamps: Track state transition times
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text="Service being booked",
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings_as_customer",
        help_text="User who requested the booking",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings_as_provider",
        help_text="User who performs the service",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=BookingStatus.PENDING,
        choices=BookingStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current booking status (managed by FSM)",
    )
    payment_status = models.CharField(
        max_length=20,
        choices=BookingPaymentStatus.choices,
        default=BookingPaymentStatus.UNPAID,
        help_text="Mirror of the linked escrow payment status",
    )

    # ==========================================================================
    # Details
    # ==========================================================================

    notes = models.TextField(
        blank=True,
        help_text="Schedule, location or other details from the customer",
    )
    cancellation_reason = models.TextField(
        blank=True,
        help_text="Reason given when the booking was declined, cancelled or refunded",
    )
    completion_feedback = models.TextField(
        blank=True,
        help_text="Feedback left by the customer when confirming completion",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    confirmed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider confirmed the booking",
    )
    delivered_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider marked the service delivered",
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking completed",
    )
    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking was cancelled",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Booking"
        verbose_name_plural = "Bookings"
        indexes = [
            models.Index(fields=["customer", "status"]),
            models.Index(fields=["provider", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["service", "customer"],
                condition=models.Q(status__in=BookingStatus.active_states()),
                name="booking_one_active_per_service_customer",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in BookingStatus.active_states()

    def is_party(self, user_id) -> bool:
        """Whether the user is the customer or the provider of this booking."""
        return str(user_id) in (str(self.customer_id), str(self.provider_id))

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=BookingStatus.PENDING,
        target=BookingStatus.CONFIRMED,
    )
    def confirm(self):
        """
        Provider accepts the booking.

        Transition: PENDING -> CONFIRMED
        """
        self.confirmed_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.CONFIRMED,
        target=BookingStatus.PENDING_COMPLETION,
    )
    def mark_delivered(self):
        """
        Provider reports the service as delivered.

        Transition: CONFIRMED -> PENDING_COMPLETION

        No money moves. Funds are released only when the customer confirms.
        """
        self.delivered_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.PENDING_COMPLETION,
        target=BookingStatus.COMPLETED,
    )
    def complete(self, feedback: str = ""):
        """
        Customer confirms the service was delivered.

        Transition: PENDING_COMPLETION -> COMPLETED
        """
        self.completed_at = timezone.now()
        if feedback:
            self.completion_feedback = feedback

    @transition(
        field=status,
        source=BookingStatus.PENDING_COMPLETION,
        target=BookingStatus.DISPUTED,
    )
    def dispute(self):
        """
        Customer contests the delivery.

        Transition: PENDING_COMPLETION -> DISPUTED

        The booking stays frozen until an operator resolves the dispute.
        """

    @transition(
        field=status,
        source=[
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            BookingStatus.PENDING_COMPLETION,
        ],
        target=BookingStatus.CANCELLED,
    )
    def cancel(self, reason: str = ""):
        """
        Cancel the booking.

        Transition: PENDING | CONFIRMED | PENDING_COMPLETION -> CANCELLED

        Which actor may cancel from which state is checked by BookingService.
        PENDING_COMPLETION is reachable only through an escrow refund.
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason

    @transition(
        field=status,
        source=BookingStatus.DISPUTED,
        target=BookingStatus.COMPLETED,
    )
    def resolve_complete(self):
        """
        Dispute resolved in the provider's favour.

        Transition: DISPUTED -> COMPLETED
        """
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.DISPUTED,
        target=BookingStatus.CANCELLED,
    )
    def resolve_cancel(self, reason: str = ""):
        """
        Dispute resolved in the customer's favour.

        Transition: DISPUTED -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason
