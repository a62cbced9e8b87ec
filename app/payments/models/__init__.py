"""
Payment domain models.

This module contains all payment-related models:
- EscrowPayment: Custody record of the money for one booking
- Dispute: A contested escrow payment awaiting operator resolution
- WebhookEvent: Gateway webhook event tracking for idempotent processing
"""

from payments.models.dispute import Dispute
from payments.models.escrow_payment import EscrowPayment
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Dispute",
    "EscrowPayment",
    "WebhookEvent",
]
