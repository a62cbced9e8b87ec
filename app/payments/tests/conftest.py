"""
Pytest fixtures for payment tests.

Fixtures provide booking/payment pairs in each legal combination, mocked
gateway adapters and a mocked Redis connection.

Usage:
    def test_release(held_pair):
        booking, payment = held_pair
        result = EscrowLedger.release(payment.pk)
        assert result.success
"""

import pytest

from bookings.models import BookingStatus
from payments.adapters import (
    CheckoutSessionResult,
    PaymentStatusResult,
    PaystackAdapter,
    RefundResult,
    StripeAdapter,
)
from payments.state_machines import EscrowStatus, PaymentProvider
from payments.tests.factories import create_booking_pair, create_disputed_pair


# =============================================================================
# Booking/Payment Pair Fixtures
# =============================================================================


@pytest.fixture
def pending_pair(db, service, customer):
    """New booking awaiting checkout: pending / pending."""
    return create_booking_pair(
        BookingStatus.PENDING,
        EscrowStatus.PENDING,
        booking__service=service,
        booking__customer=customer,
    )


@pytest.fixture
def checkout_pair(db, service, customer):
    """Pending pair with a Stripe checkout session already started."""
    return create_booking_pair(
        BookingStatus.PENDING,
        EscrowStatus.PENDING,
        booking__service=service,
        booking__customer=customer,
        provider_name=PaymentProvider.STRIPE,
        external_reference="cs_test_session",
    )


@pytest.fixture
def paid_pair(db, service, customer):
    """Funds captured, provider has not delivered: confirmed / completed."""
    return create_booking_pair(
        BookingStatus.CONFIRMED,
        EscrowStatus.COMPLETED,
        booking__service=service,
        booking__customer=customer,
        provider_name=PaymentProvider.STRIPE,
        external_reference="pi_test_paid",
    )


@pytest.fixture
def held_pair(db, service, customer):
    """Delivered and paid, awaiting the customer: pending_completion / completed."""
    return create_booking_pair(
        BookingStatus.PENDING_COMPLETION,
        EscrowStatus.COMPLETED,
        booking__service=service,
        booking__customer=customer,
        provider_name=PaymentProvider.STRIPE,
        external_reference="pi_test_held",
    )


@pytest.fixture
def disputed_pair(db, service, customer):
    """Frozen by an open dispute: (booking, payment, dispute)."""
    return create_disputed_pair(
        booking__service=service,
        booking__customer=customer,
        provider_name=PaymentProvider.STRIPE,
        external_reference="pi_test_disputed",
    )


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_gateway(mocker):
    """
    Patch every StripeAdapter call the services make.

    Returns a namespace of the patched classmethods so tests can set
    side_effect (e.g. GatewayTimeoutError) or assert calls.
    """
    refund = mocker.patch.object(
        StripeAdapter,
        "create_refund",
        return_value=RefundResult(
            id="re_test_123",
            status="succeeded",
            amount_cents=10_800,
            reference="pi_test",
        ),
    )
    cancel = mocker.patch.object(StripeAdapter, "cancel_authorization", return_value=None)
    checkout = mocker.patch.object(
        StripeAdapter,
        "create_checkout_session",
        return_value=CheckoutSessionResult(
            reference="cs_test_new",
            checkout_url="https://checkout.stripe.com/c/pay/cs_test_new",
            provider=PaymentProvider.STRIPE,
        ),
    )
    retrieve = mocker.patch.object(
        StripeAdapter,
        "retrieve_payment",
        return_value=PaymentStatusResult(
            reference="pi_test_reconciled",
            succeeded=True,
            status="succeeded",
            amount_cents=10_800,
            payment_method="card",
        ),
    )
    return mocker.Mock(
        create_refund=refund,
        cancel_authorization=cancel,
        create_checkout_session=checkout,
        retrieve_payment=retrieve,
    )


@pytest.fixture
def mock_paystack_gateway(mocker):
    """Patch PaystackAdapter checkout creation."""
    checkout = mocker.patch.object(
        PaystackAdapter,
        "create_checkout_session",
        return_value=CheckoutSessionResult(
            reference="ps_ref_123",
            checkout_url="https://checkout.paystack.com/abc123",
            provider=PaymentProvider.PAYSTACK,
        ),
    )
    return mocker.Mock(create_checkout_session=checkout)


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured for basic lock operations.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch("payments.locks.get_redis_connection", return_value=mock_client)
    return mock_client


@pytest.fixture
def mock_process_webhook(mocker):
    """Stop the webhook view from reaching the Celery broker."""
    return mocker.patch("payments.tasks.process_webhook_event.delay")
