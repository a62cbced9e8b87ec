"""
Payments app configuration.

This app provides the escrow side of the booking lifecycle:
- EscrowPayment custody records and the EscrowLedger
- Disputes and operator resolution
- Settlement webhooks from Stripe and Paystack
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
