"""
Tests for SettlementGateway.

Covers:
- Idempotent settlement: first delivery applies, redelivery is a no-op
- Conflicting settlements (other reference, refunded payment) and the
  operator alerts they raise
- Amount checks against the stored total
- Hosted checkout creation and gateway selection
- Reconciliation of pending payments
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from authentication.models import Profile
from bookings.models import Booking, BookingPaymentStatus, BookingStatus
from bookings.tests.factories import BookingFactory
from notifications.models import Notification, NotificationAudience, NotificationType
from payments.adapters import CheckoutParams, PaymentStatusResult
from payments.exceptions import GatewayTimeoutError, GatewayUnavailableError
from payments.models import EscrowPayment
from payments.services import SettlementGateway
from payments.state_machines import EscrowStatus, PaymentProvider
from payments.tests.factories import create_booking_pair

pytestmark = pytest.mark.django_db


def _operator_alerts():
    return Notification.objects.filter(audience=NotificationAudience.OPERATORS)


# =============================================================================
# Checkout Completed
# =============================================================================


class TestCheckoutCompleted:
    def test_completes_pending_payment(self, checkout_pair, provider):
        booking, payment = checkout_pair

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_1",
            booking_id=booking.pk,
            external_reference="pi_live_1",
            amount_cents=10_800,
            payment_method="card",
            session_id="cs_test_session",
        )

        assert result.success
        assert result.data.action == "completed"
        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.status == EscrowStatus.COMPLETED
        assert stored.external_reference == "pi_live_1"
        assert stored.payment_method == "card"
        assert stored.get_meta("settled_by_event") == "evt_1"
        stored_booking = Booking.objects.get(pk=booking.pk)
        assert stored_booking.status == BookingStatus.CONFIRMED
        assert stored_booking.payment_status == BookingPaymentStatus.COMPLETED
        assert Notification.objects.filter(
            recipient=provider, notification_type=NotificationType.PAYMENT_RECEIVED
        ).count() == 1

    def test_redelivery_is_a_no_op(self, checkout_pair):
        booking, payment = checkout_pair
        kwargs = {
            "event_id": "evt_1",
            "booking_id": booking.pk,
            "external_reference": "pi_live_1",
            "amount_cents": 10_800,
        }

        first = SettlementGateway.on_checkout_completed(**kwargs)
        version_after_first = EscrowPayment.objects.get(pk=payment.pk).version
        second = SettlementGateway.on_checkout_completed(**kwargs)

        assert first.data.action == "completed"
        assert second.success
        assert second.data.action == "replay"
        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.version == version_after_first
        assert EscrowPayment.objects.filter(booking=booking).count() == 1
        assert Notification.objects.filter(
            notification_type=NotificationType.PAYMENT_RECEIVED
        ).count() == 1
        assert not _operator_alerts().exists()

    def test_session_id_matches_stored_session_reference(self, service, customer):
        booking, _ = create_booking_pair(
            BookingStatus.CONFIRMED,
            EscrowStatus.COMPLETED,
            booking__service=service,
            booking__customer=customer,
            provider_name=PaymentProvider.STRIPE,
            external_reference="cs_test_session",
        )

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_2",
            booking_id=booking.pk,
            external_reference="pi_live_1",
            session_id="cs_test_session",
        )

        assert result.data.action == "replay"

    def test_settled_payment_without_reference_is_replay(self, service, customer):
        booking, _ = create_booking_pair(
            BookingStatus.CONFIRMED,
            EscrowStatus.COMPLETED,
            booking__service=service,
            booking__customer=customer,
        )

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_3", booking_id=booking.pk, external_reference="pi_live_1"
        )

        assert result.data.action == "replay"

    def test_replay_after_release(self, service, customer):
        booking, payment = create_booking_pair(
            BookingStatus.COMPLETED,
            EscrowStatus.RELEASED,
            booking__service=service,
            booking__customer=customer,
            external_reference="pi_live_1",
        )

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_4", booking_id=booking.pk, external_reference="pi_live_1"
        )

        assert result.data.action == "replay"
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.RELEASED

    def test_replay_while_disputed(self, disputed_pair):
        booking, payment, _ = disputed_pair

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_5", booking_id=booking.pk, external_reference="pi_test_disputed"
        )

        assert result.data.action == "replay"
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.DISPUTED

    def test_creates_completed_payment_when_none_exists(self, service, customer):
        booking = BookingFactory(service=service, customer=customer)

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_6",
            booking_id=booking.pk,
            external_reference="pi_live_2",
            amount_cents=10_800,
        )

        assert result.success
        assert result.data.action == "created"
        payment = EscrowPayment.objects.get(booking=booking)
        assert payment.status == EscrowStatus.COMPLETED
        assert payment.total_amount_cents == 10_800
        assert payment.external_reason == "gateway:stripe:evt_6"
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.CONFIRMED

    def test_unknown_booking(self):
        result = SettlementGateway.on_checkout_completed(
            event_id="evt_7", booking_id=uuid.uuid4(), external_reference="pi_x"
        )

        assert result.error_code == "NOT_FOUND"


# =============================================================================
# Conflicting Settlements
# =============================================================================


class TestConflictingSettlement:
    def test_other_reference_is_duplicate_payment(self, paid_pair):
        booking, payment = paid_pair

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_dup",
            booking_id=booking.pk,
            external_reference="pi_someone_else",
        )

        assert result.error_code == "DUPLICATE_PAYMENT"
        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.external_reference == "pi_test_paid"
        assert stored.version == 1

        alert = _operator_alerts().get()
        assert alert.idempotency_key == "settlement:stripe:evt_dup:DUPLICATE_PAYMENT"
        assert alert.payload["incoming_reference"] == "pi_someone_else"
        assert alert.payload["stored_reference"] == "pi_test_paid"

    def test_redelivered_conflict_alerts_once(self, paid_pair):
        booking, _ = paid_pair

        for _ in range(3):
            SettlementGateway.on_checkout_completed(
                event_id="evt_dup",
                booking_id=booking.pk,
                external_reference="pi_someone_else",
            )

        assert _operator_alerts().count() == 1

    def test_payment_for_refunded_booking_alerts(self, service, customer):
        booking, payment = create_booking_pair(
            BookingStatus.CANCELLED,
            EscrowStatus.REFUNDED,
            booking__service=service,
            booking__customer=customer,
            external_reference="pi_refunded",
        )

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_late",
            booking_id=booking.pk,
            external_reference="pi_late",
        )

        assert result.error_code == "INVALID_TRANSITION"
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.REFUNDED
        assert _operator_alerts().filter(
            idempotency_key="settlement:stripe:evt_late:INVALID_TRANSITION"
        ).exists()

    def test_payment_for_cancelled_booking_without_payment(self, service, customer):
        booking, _ = create_booking_pair(
            BookingStatus.CANCELLED,
            booking__service=service,
            booking__customer=customer,
        )

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_late", booking_id=booking.pk, external_reference="pi_late"
        )

        assert result.error_code == "INVALID_TRANSITION"
        assert not EscrowPayment.objects.filter(booking=booking).exists()
        assert _operator_alerts().count() == 1


# =============================================================================
# Amount Checks
# =============================================================================


class TestAmountCheck:
    def test_mismatch_on_pending_payment(self, checkout_pair):
        booking, payment = checkout_pair

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_amt",
            booking_id=booking.pk,
            external_reference="pi_live_1",
            amount_cents=5_000,
        )

        assert result.error_code == "CONSISTENCY_ERROR"
        assert result.details["expected_amount_cents"] == 10_800
        assert result.details["reported_amount_cents"] == 5_000
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.PENDING
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.PENDING
        assert _operator_alerts().count() == 1

    def test_mismatch_when_creating_payment(self, service, customer):
        booking = BookingFactory(service=service, customer=customer)

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_amt",
            booking_id=booking.pk,
            external_reference="pi_live_1",
            amount_cents=10_000,
        )

        assert result.error_code == "CONSISTENCY_ERROR"
        assert not EscrowPayment.objects.filter(booking=booking).exists()

    def test_missing_amount_is_not_checked(self, checkout_pair):
        booking, _ = checkout_pair

        result = SettlementGateway.on_checkout_completed(
            event_id="evt_noamt", booking_id=booking.pk, external_reference="pi_live_1"
        )

        assert result.success


# =============================================================================
# Payment Intent Succeeded
# =============================================================================


class TestPaymentIntentSucceeded:
    def test_finds_booking_by_reference(self, checkout_pair):
        booking, payment = checkout_pair

        result = SettlementGateway.on_payment_intent_succeeded(
            event_id="evt_pi", external_reference="cs_test_session", amount_cents=10_800
        )

        assert result.success
        assert result.data.booking.pk == booking.pk
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.COMPLETED

    def test_unknown_reference(self, checkout_pair):
        result = SettlementGateway.on_payment_intent_succeeded(
            event_id="evt_pi", external_reference="pi_nobody"
        )

        assert result.error_code == "NOT_FOUND"
        assert result.details["external_reference"] == "pi_nobody"

    def test_explicit_booking_id(self, pending_pair):
        booking, payment = pending_pair

        result = SettlementGateway.on_payment_intent_succeeded(
            event_id="evt_pi",
            external_reference="pi_new",
            booking_id=booking.pk,
        )

        assert result.success
        assert EscrowPayment.objects.get(pk=payment.pk).external_reference == "pi_new"


# =============================================================================
# Checkout Session
# =============================================================================


class TestCreateCheckoutSession:
    def test_stripe_checkout_for_default_country(self, pending_pair, customer, mock_stripe_gateway):
        booking, payment = pending_pair

        result = SettlementGateway.create_checkout_session(
            booking.pk,
            customer,
            success_url="https://app.example.com/paid",
            cancel_url="https://app.example.com/cancelled",
        )

        assert result.success
        assert result.data.provider == PaymentProvider.STRIPE
        params = mock_stripe_gateway.create_checkout_session.call_args.args[0]
        assert isinstance(params, CheckoutParams)
        assert params.booking_id == str(booking.pk)
        assert params.amount_cents == 10_800
        assert params.customer_email == customer.email
        assert params.metadata == {"payment_id": str(payment.pk)}

        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.external_reference == "cs_test_new"
        assert stored.provider_name == PaymentProvider.STRIPE
        assert stored.get_meta("checkout_url") == "https://checkout.stripe.com/c/pay/cs_test_new"
        assert stored.status == EscrowStatus.PENDING

    def test_paystack_for_supported_country(
        self, pending_pair, customer, mock_stripe_gateway, mock_paystack_gateway
    ):
        booking, payment = pending_pair
        Profile.objects.filter(user=customer).update(country_code="NG")
        customer.profile.refresh_from_db()

        result = SettlementGateway.create_checkout_session(
            booking.pk, customer, "https://a.example.com/ok", "https://a.example.com/no"
        )

        assert result.data.provider == PaymentProvider.PAYSTACK
        mock_stripe_gateway.create_checkout_session.assert_not_called()
        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.provider_name == PaymentProvider.PAYSTACK
        assert stored.external_reference == "ps_ref_123"

    def test_only_customer_can_pay(self, pending_pair, provider, mock_stripe_gateway):
        booking, _ = pending_pair

        result = SettlementGateway.create_checkout_session(
            booking.pk, provider, "https://a.example.com/ok", "https://a.example.com/no"
        )

        assert result.error_code == "PERMISSION_DENIED"
        mock_stripe_gateway.create_checkout_session.assert_not_called()

    def test_requires_pending_payment(self, paid_pair, customer, mock_stripe_gateway):
        booking, _ = paid_pair

        result = SettlementGateway.create_checkout_session(
            booking.pk, customer, "https://a.example.com/ok", "https://a.example.com/no"
        )

        assert result.error_code == "INVALID_TRANSITION"
        mock_stripe_gateway.create_checkout_session.assert_not_called()

    def test_gateway_timeout_stores_nothing(self, pending_pair, customer, mock_stripe_gateway):
        booking, payment = pending_pair
        mock_stripe_gateway.create_checkout_session.side_effect = GatewayTimeoutError(
            "Request timed out", gateway="stripe"
        )

        result = SettlementGateway.create_checkout_session(
            booking.pk, customer, "https://a.example.com/ok", "https://a.example.com/no"
        )

        assert result.error_code == "GATEWAY_TIMEOUT"
        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.external_reference == ""
        assert stored.version == 1


# =============================================================================
# Reconciliation
# =============================================================================


def _age(payment, minutes=60):
    EscrowPayment.objects.filter(pk=payment.pk).update(
        created_at=timezone.now() - timedelta(minutes=minutes)
    )


class TestReconcilePendingPayments:
    def test_settles_payment_the_gateway_captured(self, checkout_pair, mock_stripe_gateway):
        booking, payment = checkout_pair
        _age(payment)

        summary = SettlementGateway.reconcile_pending_payments(older_than_minutes=30)

        assert summary.checked == 1
        assert summary.settled == 1
        mock_stripe_gateway.retrieve_payment.assert_called_once_with("cs_test_session")
        stored = EscrowPayment.objects.get(pk=payment.pk)
        assert stored.status == EscrowStatus.COMPLETED
        assert stored.external_reference == "pi_test_reconciled"
        assert stored.get_meta("settled_by_event") == f"reconcile:{payment.pk}"
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.CONFIRMED

    def test_still_pending_at_gateway(self, checkout_pair, mock_stripe_gateway):
        _, payment = checkout_pair
        _age(payment)
        mock_stripe_gateway.retrieve_payment.return_value = PaymentStatusResult(
            reference="cs_test_session", succeeded=False, status="open"
        )

        summary = SettlementGateway.reconcile_pending_payments(older_than_minutes=30)

        assert summary.still_pending == 1
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.PENDING

    def test_gateway_error_counts_as_failed(self, checkout_pair, mock_stripe_gateway):
        _, payment = checkout_pair
        _age(payment)
        mock_stripe_gateway.retrieve_payment.side_effect = GatewayUnavailableError(
            "Stripe is down", gateway="stripe"
        )

        summary = SettlementGateway.reconcile_pending_payments(older_than_minutes=30)

        assert summary.failed == 1
        assert summary.settled == 0

    def test_skips_recent_payment(self, checkout_pair, mock_stripe_gateway):
        summary = SettlementGateway.reconcile_pending_payments(older_than_minutes=30)

        assert summary.checked == 0
        mock_stripe_gateway.retrieve_payment.assert_not_called()

    def test_skips_payment_without_reference(self, pending_pair, mock_stripe_gateway):
        _, payment = pending_pair
        _age(payment)

        summary = SettlementGateway.reconcile_pending_payments(older_than_minutes=30)

        assert summary.checked == 0
        mock_stripe_gateway.retrieve_payment.assert_not_called()

    def test_amount_mismatch_counts_as_failed(self, checkout_pair, mock_stripe_gateway):
        _, payment = checkout_pair
        _age(payment)
        mock_stripe_gateway.retrieve_payment.return_value = PaymentStatusResult(
            reference="pi_test_reconciled", succeeded=True, status="succeeded", amount_cents=1
        )

        summary = SettlementGateway.reconcile_pending_payments(older_than_minutes=30)

        assert summary.failed == 1
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.PENDING
