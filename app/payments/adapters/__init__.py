"""
Payment gateway adapters.

All external payment API calls go through these adapters so that
timeouts, error translation, idempotency and logging are handled the
same way for every provider.

Usage:
    from payments.adapters import get_gateway

    gateway = get_gateway(payment.provider_name)
    gateway.create_refund(
        reference=payment.external_reference,
        amount_cents=payment.total_amount_cents,
        idempotency_key=IdempotencyKeyGenerator.generate("refund", payment.id),
    )
"""

from django.conf import settings

from core.exceptions import ValidationError
from payments.adapters.base import (
    CheckoutParams,
    CheckoutSessionResult,
    EventKind,
    IdempotencyKeyGenerator,
    PaymentGateway,
    PaymentStatusResult,
    RefundResult,
    SettlementEvent,
    VerificationSessionResult,
)
from payments.adapters.paystack_adapter import PaystackAdapter
from payments.adapters.stripe_adapter import StripeAdapter
from payments.state_machines import PaymentProvider

_GATEWAYS = {
    PaymentProvider.STRIPE.value: StripeAdapter,
    PaymentProvider.PAYSTACK.value: PaystackAdapter,
}


def get_gateway(provider: str):
    """
    Return the adapter for a provider name.

    Raises:
        ValidationError: Unknown provider
    """
    try:
        return _GATEWAYS[provider or PaymentProvider.STRIPE.value]
    except KeyError:
        raise ValidationError(
            f"Unknown payment provider: {provider}",
            details={"provider": provider},
        )


def select_payment_provider(country_code: str | None) -> str:
    """Paystack for its supported countries, Stripe everywhere else."""
    if country_code and country_code.upper() in settings.PAYSTACK_COUNTRIES:
        return PaymentProvider.PAYSTACK.value
    return PaymentProvider.STRIPE.value


__all__ = [
    "CheckoutParams",
    "CheckoutSessionResult",
    "EventKind",
    "IdempotencyKeyGenerator",
    "PaymentGateway",
    "PaymentStatusResult",
    "PaystackAdapter",
    "RefundResult",
    "SettlementEvent",
    "StripeAdapter",
    "VerificationSessionResult",
    "get_gateway",
    "select_payment_provider",
]
