"""
Factory Boy factories for payment test data.

Usage:
    from payments.tests.factories import (
        DisputeFactory,
        EscrowPaymentFactory,
        WebhookEventFactory,
        create_booking_pair,
    )

    # Booking and payment in any legal combination
    booking, payment = create_booking_pair(
        BookingStatus.PENDING_COMPLETION, EscrowStatus.COMPLETED
    )

    # Stored webhook awaiting processing
    event = WebhookEventFactory(event_type="checkout.session.completed")
"""

import factory

from bookings.models import BookingPaymentStatus, BookingStatus
from bookings.tests.factories import BookingFactory
from payments.fees import platform_fee_cents
from payments.models import Dispute, EscrowPayment, WebhookEvent
from payments.state_machines import (
    DisputeStatus,
    EscrowStatus,
    PaymentProvider,
    WebhookEventStatus,
)


class EscrowPaymentFactory(factory.django.DjangoModelFactory):
    """
    Pending escrow payment for a booking.

    Parties, service and amounts are derived from the booking so the row
    satisfies the amount check constraints.
    """

    class Meta:
        model = EscrowPayment

    booking = factory.SubFactory(BookingFactory)
    service = factory.LazyAttribute(lambda o: o.booking.service)
    customer = factory.LazyAttribute(lambda o: o.booking.customer)
    provider = factory.LazyAttribute(lambda o: o.booking.provider)
    amount_cents = factory.LazyAttribute(lambda o: o.booking.service.price_cents)
    platform_fee_cents = factory.LazyAttribute(lambda o: platform_fee_cents(o.amount_cents))
    total_amount_cents = factory.LazyAttribute(
        lambda o: o.amount_cents + o.platform_fee_cents
    )
    currency = factory.LazyAttribute(lambda o: o.booking.service.currency)
    provider_name = ""
    external_reference = ""


class DisputeFactory(factory.django.DjangoModelFactory):
    """Open dispute raised by the customer on a disputed payment."""

    class Meta:
        model = Dispute

    payment = factory.SubFactory(EscrowPaymentFactory)
    booking = factory.LazyAttribute(lambda o: o.payment.booking)
    created_by = factory.LazyAttribute(lambda o: o.payment.customer)
    customer = factory.LazyAttribute(lambda o: o.payment.customer)
    provider = factory.LazyAttribute(lambda o: o.payment.provider)
    reason = "Work was not done"
    description = "Nobody showed up."
    status = DisputeStatus.OPEN


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """Stored Stripe webhook event awaiting processing."""

    class Meta:
        model = WebhookEvent

    provider = PaymentProvider.STRIPE
    event_id = factory.Sequence(lambda n: f"evt_test_{n:06d}")
    event_type = "payment_intent.succeeded"
    payload = factory.LazyAttribute(
        lambda o: {"id": o.event_id, "type": o.event_type, "data": {"object": {}}}
    )
    status = WebhookEventStatus.PENDING


def create_booking_pair(booking_status, payment_status=None, **kwargs):
    """
    Create a booking and its escrow payment in the given states.

    Args:
        booking_status: BookingStatus for the booking
        payment_status: EscrowStatus for the payment, or None for no payment
        **kwargs: booking__<field> go to BookingFactory, the rest to
            EscrowPaymentFactory

    Returns:
        (booking, payment) with payment None when payment_status is None
    """
    booking_kwargs = {
        key.removeprefix("booking__"): value
        for key, value in kwargs.items()
        if key.startswith("booking__")
    }
    payment_kwargs = {
        key: value for key, value in kwargs.items() if not key.startswith("booking__")
    }

    booking = BookingFactory(
        status=booking_status,
        payment_status=payment_status or BookingPaymentStatus.UNPAID,
        **booking_kwargs,
    )
    if payment_status is None:
        return booking, None
    payment = EscrowPaymentFactory(booking=booking, status=payment_status, **payment_kwargs)
    return booking, payment


def create_disputed_pair(**kwargs):
    """Disputed booking and payment with the open Dispute that froze them."""
    booking, payment = create_booking_pair(
        BookingStatus.DISPUTED, EscrowStatus.DISPUTED, **kwargs
    )
    dispute = DisputeFactory(payment=payment)
    return booking, payment, dispute
