"""
Gateway-neutral data types and the PaymentGateway protocol.

Adapters translate provider payloads into these types so the settlement
and ledger services never look at Stripe or Paystack shapes directly.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from django.conf import settings

# =============================================================================
# Data Types
# =============================================================================


class EventKind:
    """Normalized inbound event kinds."""

    CHECKOUT_COMPLETED = "checkout.completed"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    VERIFICATION_VERIFIED = "verification.verified"
    VERIFICATION_REQUIRES_INPUT = "verification.requires_input"
    IGNORED = "ignored"


@dataclass
class SettlementEvent:
    """
    A verified inbound webhook event, normalized.

    Attributes:
        kind: One of EventKind
        event_id: Provider event id, unique per provider
        event_type: Provider's own event type string
        booking_id: Booking id carried in the payment metadata
        reference: Payment intent / transaction reference
        amount_cents: Amount the provider reports as paid
        currency: Lowercase ISO 4217 currency
        payment_method: Payment method type (card, bank_transfer, ...)
        session_id: Identity verification session id (verification events)
    """

    kind: str
    event_id: str
    event_type: str
    booking_id: str | None = None
    reference: str | None = None
    amount_cents: int | None = None
    currency: str | None = None
    payment_method: str = ""
    session_id: str | None = None


@dataclass
class CheckoutParams:
    """
    Parameters for starting a hosted checkout.

    Attributes:
        booking_id: Booking being paid for (travels in metadata)
        amount_cents: Total to charge (service price + platform fee)
        currency: ISO 4217 currency code
        description: Line item description
        customer_email: Prefills the checkout form
        success_url/cancel_url: Redirect targets
        idempotency_key: Unique key for idempotent creation
        metadata: Extra key-value pairs
    """

    booking_id: str
    amount_cents: int
    currency: str
    description: str
    customer_email: str
    success_url: str
    cancel_url: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class CheckoutSessionResult:
    """Hosted checkout created at the provider."""

    reference: str
    checkout_url: str
    provider: str


@dataclass
class PaymentStatusResult:
    """
    Provider-side status of a payment.

    Attributes:
        reference: Reference the provider knows the payment by
        succeeded: Whether funds were captured
        amount_cents: Captured amount
        payment_method: Payment method type, if known
    """

    reference: str
    succeeded: bool
    status: str
    amount_cents: int | None = None
    payment_method: str = ""


@dataclass
class RefundResult:
    """Refund created at the provider."""

    id: str
    status: str
    amount_cents: int
    reference: str


@dataclass
class VerificationSessionResult:
    """Identity verification session created at the provider."""

    id: str
    status: str
    url: str | None = None
    client_secret: str | None = None


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class PaymentGateway(Protocol):
    """Operations the escrow services need from a payment provider."""

    name: str

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]: ...

    def parse_event(self, event: dict[str, Any]) -> SettlementEvent: ...

    def create_checkout_session(self, params: CheckoutParams) -> CheckoutSessionResult: ...

    def retrieve_payment(self, reference: str) -> PaymentStatusResult: ...

    def cancel_authorization(self, reference: str, idempotency_key: str) -> None: ...

    def create_refund(
        self,
        reference: str,
        amount_cents: int,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult: ...


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for gateway calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same (operation, entity, attempt) always yields the same key, so a
    retry after a timeout replays the provider's stored result instead of
    performing the operation twice.

    Example:
        key = IdempotencyKeyGenerator.generate("refund", payment.id)
        # "refund:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"

