"""
EscrowPayment model: the custody record of money for one booking.

Usage:
    from payments.models import EscrowPayment
    from payments.state_machines import EscrowStatus

    payment.mark_completed()   # pending -> completed
    save_versioned(payment)

Amounts are integer minor units. The database enforces
total_amount_cents = amount_cents + platform_fee_cents, and at most one
payment in a live state (pending, completed, disputed) per booking.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payments.state_machines import EscrowStatus, PaymentProvider


class EscrowPayment(UUIDPrimaryKeyMixin, VersionedMixin, MetadataMixin, BaseModel):
    """
    Custody record for the money paid for one booking.

    State Flow:
        PENDING -> COMPLETED -> RELEASED
        PENDING -> COMPLETED -> DISPUTED -> RELEASED | REFUNDED (resolution)
        PENDING -> REFUNDED
        COMPLETED -> REFUNDED

    Fields:
        booking: Booking this payment belongs to
        service/customer/provider: Copied from the booking for reporting
        amount_cents: Service price
        platform_fee_cents: Marketplace fee (see payments.fees)
        total_amount_cents: Amount charged to the customer
        status: Current FSM state
        provider_name: Gateway that handled the payment (stripe, paystack)
        payment_method: Gateway payment method (card, bank_transfer, ...)
        external_reference: Gateway checkout session / payment intent id
        external_reason: Audit reason when created directly as completed
        refund_reason: Reason given for the refund
        version: Optimistic locking version
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Booking this payment belongs to",
    )
    service = models.ForeignKey(
        "bookings.Service",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Service that was booked",
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrow_payments_made",
        help_text="User paying for the booking",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrow_payments_received",
        help_text="User receiving the funds on release",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Service price in smallest currency unit (e.g., cents)",
    )
    platform_fee_cents = models.PositiveBigIntegerField(
        help_text="Platform fee in smallest currency unit",
    )
    total_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount charged to the customer (amount + platform fee)",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=EscrowStatus.PENDING,
        choices=EscrowStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current custody state (managed by FSM)",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    provider_name = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        blank=True,
        help_text="Payment gateway that processed the payment",
    )
    payment_method = models.CharField(
        max_length=50,
        blank=True,
        help_text="Gateway payment method (e.g., 'card')",
    )
    external_reference = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Gateway checkout session or payment intent ID",
    )

    # ==========================================================================
    # Audit
    # ==========================================================================

    external_reason = models.CharField(
        max_length=255,
        blank=True,
        help_text="Why the payment was created already completed (out-of-band settlement)",
    )
    refund_reason = models.TextField(
        blank=True,
        help_text="Reason given for the refund",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When funds were captured into escrow",
    )
    released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When funds were released to the provider",
    )
    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was refunded",
    )
    disputed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When a dispute froze the payment",
    )
    release_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Earliest date funds are expected to be released",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Escrow Payment"
        verbose_name_plural = "Escrow Payments"
        indexes = [
            models.Index(fields=["booking", "status"]),
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["provider_name", "external_reference"]),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount_cents__gt=0),
                name="escrow_payment_amount_positive",
            ),
            models.CheckConstraint(
                check=models.Q(
                    total_amount_cents=F("amount_cents") + F("platform_fee_cents")
                ),
                name="escrow_payment_total_matches",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(status__in=EscrowStatus.live_states()),
                name="escrow_payment_one_live_per_booking",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.total_amount_cents / 100:.2f} {self.currency.upper()}"
        return f"EscrowPayment({self.id}, {self.status}, {amount_display})"

    @property
    def is_live(self) -> bool:
        return self.status in EscrowStatus.live_states()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=EscrowStatus.PENDING,
        target=EscrowStatus.COMPLETED,
    )
    def mark_completed(self):
        """
        Funds captured and held in escrow.

        Transition: PENDING -> COMPLETED
        """
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=EscrowStatus.COMPLETED,
        target=EscrowStatus.RELEASED,
    )
    def release(self):
        """
        Release held funds to the provider.

        Transition: COMPLETED -> RELEASED
        """
        self.released_at = timezone.now()

    @transition(
        field=status,
        source=[EscrowStatus.PENDING, EscrowStatus.COMPLETED],
        target=EscrowStatus.REFUNDED,
    )
    def refund(self, reason: str = ""):
        """
        Return funds to the customer, or drop an uncaptured authorization.

        Transition: PENDING | COMPLETED -> REFUNDED
        """
        self.refunded_at = timezone.now()
        self.refund_reason = reason

    @transition(
        field=status,
        source=EscrowStatus.COMPLETED,
        target=EscrowStatus.DISPUTED,
    )
    def open_dispute(self):
        """
        Freeze held funds while a dispute is open.

        Transition: COMPLETED -> DISPUTED

        release() and refund() are not reachable from DISPUTED. Only an
        operator resolution moves the payment on.
        """
        self.disputed_at = timezone.now()

    @transition(
        field=status,
        source=EscrowStatus.DISPUTED,
        target=EscrowStatus.RELEASED,
    )
    def resolve_release(self):
        """
        Operator resolved the dispute for the provider.

        Transition: DISPUTED -> RELEASED
        """
        self.released_at = timezone.now()

    @transition(
        field=status,
        source=EscrowStatus.DISPUTED,
        target=EscrowStatus.REFUNDED,
    )
    def resolve_refund(self, reason: str = ""):
        """
        Operator resolved the dispute for the customer.

        Transition: DISPUTED -> REFUNDED
        """
        self.refunded_at = timezone.now()
        self.refund_reason = reason
