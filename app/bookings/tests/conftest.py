"""
Pytest fixtures for booking tests.

Each pair fixture returns (booking, payment) for the shared customer,
provider and service fixtures. Only one of them can be used per test:
a customer may hold one active booking per service.
"""

import pytest

from bookings.models import BookingStatus
from payments.adapters import RefundResult, StripeAdapter
from payments.state_machines import EscrowStatus, PaymentProvider
from payments.tests.factories import create_booking_pair


def _pair(service, customer, booking_status, payment_status, **kwargs):
    return create_booking_pair(
        booking_status,
        payment_status,
        booking__service=service,
        booking__customer=customer,
        **kwargs,
    )


@pytest.fixture
def requested_booking(db, service, customer):
    """pending / pending, no checkout started."""
    return _pair(service, customer, BookingStatus.PENDING, EscrowStatus.PENDING)


@pytest.fixture
def confirmed_unpaid_booking(db, service, customer):
    """Provider accepted, customer has not paid: confirmed / pending."""
    return _pair(
        service,
        customer,
        BookingStatus.CONFIRMED,
        EscrowStatus.PENDING,
        provider_name=PaymentProvider.STRIPE,
        external_reference="cs_test_open",
    )


@pytest.fixture
def confirmed_paid_booking(db, service, customer):
    """confirmed / completed."""
    return _pair(
        service,
        customer,
        BookingStatus.CONFIRMED,
        EscrowStatus.COMPLETED,
        provider_name=PaymentProvider.STRIPE,
        external_reference="pi_test_paid",
    )


@pytest.fixture
def delivered_paid_booking(db, service, customer):
    """pending_completion / completed."""
    return _pair(
        service,
        customer,
        BookingStatus.PENDING_COMPLETION,
        EscrowStatus.COMPLETED,
        provider_name=PaymentProvider.STRIPE,
        external_reference="pi_test_held",
    )


@pytest.fixture
def delivered_unpaid_booking(db, service, customer):
    """Delivered before the customer paid: pending_completion / pending."""
    return _pair(service, customer, BookingStatus.PENDING_COMPLETION, EscrowStatus.PENDING)


@pytest.fixture
def stripe_refunds(mocker):
    """Patch the Stripe refund and cancel calls made when a booking is cancelled."""
    refund = mocker.patch.object(
        StripeAdapter,
        "create_refund",
        return_value=RefundResult(
            id="re_test_123", status="succeeded", amount_cents=10_800, reference="pi_test"
        ),
    )
    cancel = mocker.patch.object(StripeAdapter, "cancel_authorization", return_value=None)
    return mocker.Mock(create_refund=refund, cancel_authorization=cancel)
