"""
Payments app for escrow custody and settlement.

This app handles:
- Platform fee arithmetic (fees.py)
- EscrowPayment lifecycle: create, complete, release, refund, dispute
- Dispute resolution by operators
- Webhook-driven settlement from Stripe and Paystack
- Reconciliation of pending payments whose webhooks were missed

Related apps:
    - bookings: Booking whose status moves together with its payment
    - notifications: Payment event notifications and operator alerts

Usage:
    from payments.services import EscrowLedger

    result = EscrowLedger.release(payment_id)
    if not result:
        logger.warning("Release rejected: %s", result.error_code)
"""
