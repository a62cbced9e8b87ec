"""
State enums for payment models.

This module defines the state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

EscrowPayment States:
    pending → completed → released
    pending → completed → disputed → released | refunded (operator resolution)
    pending → refunded
    completed → refunded

Dispute States:
    open → resolved

WebhookEvent States:
    pending → processing → processed
    pending → processing → failed (can retry)
"""

from django.db import models


class EscrowStatus(models.TextChoices):
    """
    Custody states of an EscrowPayment.

    PENDING: Created with the booking, funds not yet captured
    COMPLETED: Funds captured and held in escrow
    RELEASED: Funds released to the provider (terminal)
    REFUNDED: Funds returned or authorization cancelled (terminal)
    DISPUTED: Frozen by an open dispute until an operator resolves it
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"
    DISPUTED = "disputed", "Disputed"

    @classmethod
    def live_states(cls) -> list[str]:
        """States that count as the booking's single non-terminal payment."""
        return [cls.PENDING, cls.COMPLETED, cls.DISPUTED]

    @classmethod
    def settled_states(cls) -> list[str]:
        """States reached only after funds were captured."""
        return [cls.COMPLETED, cls.RELEASED, cls.DISPUTED]


class DisputeStatus(models.TextChoices):
    """Lifecycle of a Dispute."""

    OPEN = "open", "Open"
    RESOLVED = "resolved", "Resolved"


class DisputeResolution(models.TextChoices):
    """Outcome chosen by the operator who resolves a dispute."""

    RELEASE = "release", "Release to provider"
    REFUND = "refund", "Refund to customer"


class PaymentProvider(models.TextChoices):
    """External payment gateways."""

    STRIPE = "stripe", "Stripe"
    PAYSTACK = "paystack", "Paystack"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
