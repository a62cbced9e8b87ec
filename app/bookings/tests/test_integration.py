"""
End-to-end booking lifecycle tests.

Each test drives the public API (booking actions, checkout and the
payment webhook) and checks the booking/payment pair and the
notifications it leaves behind. Webhook processing runs inline by
routing process_webhook_event.delay to the task itself.
"""

import hashlib
import hmac
import json
import time

import pytest
from django.urls import reverse
from rest_framework import status

from authentication.tests.factories import UserFactory
from bookings.models import Booking, BookingStatus
from notifications.models import Notification, NotificationAudience, NotificationType
from payments.adapters import CheckoutSessionResult, StripeAdapter
from payments.models import EscrowPayment, WebhookEvent
from payments.services import EscrowLedger
from payments.state_machines import EscrowStatus, PaymentProvider, WebhookEventStatus
from payments.tasks import process_webhook_event

pytestmark = pytest.mark.django_db

CHECKOUT_BODY = {
    "success_url": "https://app.example.com/paid",
    "cancel_url": "https://app.example.com/cancelled",
}


def booking_url(name, booking_id):
    return reverse(f"bookings:booking-{name}", kwargs={"pk": booking_id})


def stripe_envelope(event_id, event_type, obj):
    payload = json.dumps(
        {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}
    )
    timestamp = int(time.time())
    signed = hmac.new(
        b"whsec_test_123", f"{timestamp}.{payload}".encode(), hashlib.sha256
    ).hexdigest()
    return {"provider": "stripe", "data": payload, "signature": f"t={timestamp},v1={signed}"}


def checkout_completed(booking_id, event_id="evt_checkout_1", intent="pi_test_live"):
    return stripe_envelope(
        event_id,
        "checkout.session.completed",
        {
            "id": "cs_test_live",
            "object": "checkout.session",
            "payment_status": "paid",
            "payment_intent": intent,
            "amount_total": 10_800,
            "currency": "usd",
            "payment_method_types": ["card"],
            "metadata": {"booking_id": str(booking_id)},
        },
    )


@pytest.fixture
def inline_webhooks(mocker):
    """Process queued webhook events synchronously."""
    return mocker.patch(
        "payments.tasks.process_webhook_event.delay",
        side_effect=lambda event_id: process_webhook_event(event_id),
    )


@pytest.fixture
def stripe_checkout(mocker):
    return mocker.patch.object(
        StripeAdapter,
        "create_checkout_session",
        return_value=CheckoutSessionResult(
            reference="cs_test_live",
            checkout_url="https://checkout.stripe.com/c/pay/cs_test_live",
            provider=PaymentProvider.STRIPE,
        ),
    )


@pytest.fixture
def post_webhook(client, inline_webhooks):
    def _post(envelope):
        return client.post(
            reverse("payments:payment_webhook"),
            data=json.dumps(envelope),
            content_type="application/json",
        )

    return _post


@pytest.fixture
def parties(authenticated_client_factory, customer, provider):
    """API clients for the customer and the provider."""
    return authenticated_client_factory(customer), authenticated_client_factory(provider)


@pytest.fixture
def paid_booking_id(parties, service, stripe_checkout, post_webhook):
    """Request, confirm, check out and settle a booking through the API."""
    customer_client, provider_client = parties
    created = customer_client.post(
        reverse("bookings:booking-list"), {"service_id": str(service.pk)}, format="json"
    )
    booking_id = created.data["booking"]["id"]
    provider_client.post(booking_url("confirm", booking_id), {}, format="json")
    customer_client.post(
        reverse("payments:checkout", kwargs={"booking_id": booking_id}),
        CHECKOUT_BODY,
        format="json",
    )
    post_webhook(checkout_completed(booking_id))
    return booking_id


def pair(booking_id):
    booking = Booking.objects.get(pk=booking_id)
    return booking, EscrowPayment.objects.get(booking=booking)


def count(notification_type, recipient=None):
    queryset = Notification.objects.filter(notification_type=notification_type)
    if recipient is not None:
        queryset = queryset.filter(recipient=recipient)
    return queryset.count()


# =============================================================================
# Happy Path
# =============================================================================


class TestHappyPath:
    def test_request_quotes_fee(self, parties, service):
        customer_client, _ = parties

        response = customer_client.post(
            reverse("bookings:booking-list"), {"service_id": str(service.pk)}, format="json"
        )

        payment = response.data["payment"]
        assert payment["amount_cents"] == 10_000
        assert payment["platform_fee_cents"] == 800
        assert payment["total_amount_cents"] == 10_800

    def test_webhook_settles_payment(self, paid_booking_id, provider):
        booking, payment = pair(paid_booking_id)

        assert booking.status == BookingStatus.CONFIRMED
        assert payment.status == EscrowStatus.COMPLETED
        assert payment.external_reference == "pi_test_live"
        assert payment.payment_method == "card"
        assert count(NotificationType.PAYMENT_RECEIVED, provider) == 1
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PROCESSED

    def test_delivery_and_completion_release_funds(
        self, parties, paid_booking_id, customer, provider
    ):
        customer_client, provider_client = parties

        delivered = provider_client.post(booking_url("deliver", paid_booking_id), {}, format="json")
        completed = customer_client.post(
            booking_url("confirm-completion", paid_booking_id),
            {"feedback": "Spotless"},
            format="json",
        )

        assert delivered.status_code == status.HTTP_200_OK
        assert completed.status_code == status.HTTP_200_OK
        booking, payment = pair(paid_booking_id)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.completion_feedback == "Spotless"
        assert payment.status == EscrowStatus.RELEASED
        assert payment.release_date is not None
        assert count(NotificationType.SERVICE_DELIVERED, customer) == 1
        assert count(NotificationType.PAYMENT_RELEASED, provider) == 1


# =============================================================================
# Conflicts & Cancellation
# =============================================================================


class TestConflictsAndCancellation:
    def test_second_active_request_creates_nothing(self, parties, service):
        customer_client, _ = parties
        body = {"service_id": str(service.pk)}
        customer_client.post(reverse("bookings:booking-list"), body, format="json")

        response = customer_client.post(reverse("bookings:booking-list"), body, format="json")

        assert response.data["error_code"] == "ACTIVE_BOOKING_EXISTS"
        assert Booking.objects.count() == 1
        assert EscrowPayment.objects.count() == 1

    def test_decline_refunds_and_notifies_customer(self, parties, service, customer):
        customer_client, provider_client = parties
        created = customer_client.post(
            reverse("bookings:booking-list"), {"service_id": str(service.pk)}, format="json"
        )
        booking_id = created.data["booking"]["id"]

        response = provider_client.post(
            booking_url("decline", booking_id), {"reason": "Fully booked"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        booking, payment = pair(booking_id)
        assert booking.status == BookingStatus.CANCELLED
        assert payment.status == EscrowStatus.REFUNDED
        assert count(NotificationType.BOOKING_DECLINED, customer) == 1

    def test_late_payment_for_cancelled_booking_alerts_operators(
        self, mocker, parties, service, stripe_checkout, post_webhook
    ):
        customer_client, provider_client = parties
        created = customer_client.post(
            reverse("bookings:booking-list"), {"service_id": str(service.pk)}, format="json"
        )
        booking_id = created.data["booking"]["id"]
        customer_client.post(
            reverse("payments:checkout", kwargs={"booking_id": booking_id}),
            CHECKOUT_BODY,
            format="json",
        )
        # Customer completes checkout after the provider declined
        mocker.patch.object(StripeAdapter, "cancel_authorization", return_value=None)
        provider_client.post(booking_url("decline", booking_id), {}, format="json")

        response = post_webhook(checkout_completed(booking_id))

        assert response.status_code == status.HTTP_200_OK
        booking, payment = pair(booking_id)
        assert booking.status == BookingStatus.CANCELLED
        assert payment.status == EscrowStatus.REFUNDED
        assert EscrowPayment.objects.count() == 1
        assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED
        assert Notification.objects.filter(audience=NotificationAudience.OPERATORS).exists()


# =============================================================================
# Completion Gate & Disputes
# =============================================================================


class TestCompletionAndDisputes:
    def test_completion_requires_payment(self, parties, service):
        customer_client, provider_client = parties
        created = customer_client.post(
            reverse("bookings:booking-list"), {"service_id": str(service.pk)}, format="json"
        )
        booking_id = created.data["booking"]["id"]
        provider_client.post(booking_url("confirm", booking_id), {}, format="json")
        provider_client.post(booking_url("deliver", booking_id), {}, format="json")

        response = customer_client.post(
            booking_url("confirm-completion", booking_id), {}, format="json"
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        booking, payment = pair(booking_id)
        assert booking.status == BookingStatus.PENDING_COMPLETION
        assert payment.status == EscrowStatus.PENDING

    def test_dispute_freezes_funds_until_resolved(
        self, parties, paid_booking_id, customer, provider, staff_user,
        authenticated_client_factory,
    ):
        customer_client, provider_client = parties
        provider_client.post(booking_url("deliver", paid_booking_id), {}, format="json")

        disputed = customer_client.post(
            booking_url("dispute", paid_booking_id),
            {"reason": "Half the rooms skipped"},
            format="json",
        )

        assert disputed.status_code == status.HTTP_200_OK
        booking, payment = pair(paid_booking_id)
        assert booking.status == BookingStatus.DISPUTED
        assert payment.status == EscrowStatus.DISPUTED
        assert count(NotificationType.DISPUTE_OPENED, provider) == 1
        assert count(NotificationType.DISPUTE_OPENED, customer) == 1
        assert Notification.objects.filter(
            audience=NotificationAudience.OPERATORS,
            notification_type=NotificationType.DISPUTE_OPENED,
        ).count() == 1

        release = EscrowLedger.release(payment.pk)
        refund = EscrowLedger.refund(payment.pk, "Customer asked")

        assert release.error_code == "INVALID_TRANSITION"
        assert refund.error_code == "INVALID_TRANSITION"
        assert pair(paid_booking_id)[1].status == EscrowStatus.DISPUTED

        resolved = authenticated_client_factory(staff_user).post(
            reverse(
                "payments:dispute-resolve",
                kwargs={"dispute_id": disputed.data["dispute"]["id"]},
            ),
            {"outcome": "release", "note": "Photos show the work was done"},
            format="json",
        )

        assert resolved.status_code == status.HTTP_200_OK
        booking, payment = pair(paid_booking_id)
        assert booking.status == BookingStatus.COMPLETED
        assert payment.status == EscrowStatus.RELEASED

    def test_stranger_cannot_touch_booking(
        self, authenticated_client_factory, paid_booking_id
    ):
        stranger = authenticated_client_factory(UserFactory())

        response = stranger.post(booking_url("dispute", paid_booking_id), {"reason": "x"})

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# Webhook Redelivery
# =============================================================================


class TestWebhookRedelivery:
    def test_same_event_twice(self, paid_booking_id, post_webhook, provider):
        response = post_webhook(checkout_completed(paid_booking_id))

        assert response.status_code == status.HTTP_200_OK
        assert response.content == b"Already processed"
        assert EscrowPayment.objects.count() == 1
        assert count(NotificationType.PAYMENT_RECEIVED, provider) == 1

    def test_other_event_for_same_reference(self, paid_booking_id, post_webhook, provider):
        response = post_webhook(
            stripe_envelope(
                "evt_intent_1",
                "payment_intent.succeeded",
                {
                    "id": "pi_test_live",
                    "object": "payment_intent",
                    "amount_received": 10_800,
                    "payment_method_types": ["card"],
                    "metadata": {"booking_id": str(paid_booking_id)},
                },
            )
        )

        assert response.status_code == status.HTTP_200_OK
        _, payment = pair(paid_booking_id)
        assert payment.status == EscrowStatus.COMPLETED
        assert EscrowPayment.objects.count() == 1
        assert count(NotificationType.PAYMENT_RECEIVED, provider) == 1
        assert WebhookEvent.objects.filter(status=WebhookEventStatus.PROCESSED).count() == 2

    def test_second_payment_for_settled_booking(self, paid_booking_id, post_webhook):
        response = post_webhook(
            checkout_completed(paid_booking_id, event_id="evt_checkout_2", intent="pi_test_other")
        )

        assert response.status_code == status.HTTP_200_OK
        _, payment = pair(paid_booking_id)
        assert payment.external_reference == "pi_test_live"
        assert EscrowPayment.objects.count() == 1
        assert WebhookEvent.objects.get(event_id="evt_checkout_2").status == (
            WebhookEventStatus.FAILED
        )
        assert Notification.objects.filter(audience=NotificationAudience.OPERATORS).exists()
