"""
Escrow payment services.

This package provides:
- EscrowLedger: Lifecycle of the escrow payment attached to a booking
- DisputeResolver: Operator resolution of disputes
- SettlementGateway: Idempotent application of gateway events, checkout
  creation and reconciliation of missed webhooks

Usage:
    from payments.services import EscrowLedger, SettlementGateway

    result = EscrowLedger.refund(payment_id, reason="Provider unavailable")

    result = SettlementGateway.on_checkout_completed(
        event_id=event.event_id,
        booking_id=event.booking_id,
        external_reference=event.reference,
    )
"""

from payments.services.base import LifecycleService
from payments.services.dispute_resolver import DisputeResolver
from payments.services.escrow_ledger import EscrowLedger
from payments.services.settlement import (
    ReconciliationSummary,
    SettlementGateway,
    SettlementOutcome,
)

__all__ = [
    "DisputeResolver",
    "EscrowLedger",
    "LifecycleService",
    "ReconciliationSummary",
    "SettlementGateway",
    "SettlementOutcome",
]
