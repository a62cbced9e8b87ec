"""
Tests for DisputeResolver.
"""

import uuid

import pytest

from authentication.tests.factories import UserFactory
from bookings.models import Booking, BookingPaymentStatus, BookingStatus
from notifications.models import Notification, NotificationType
from payments.exceptions import GatewayTimeoutError
from payments.models import Dispute, EscrowPayment
from payments.services import DisputeResolver
from payments.state_machines import DisputeResolution, DisputeStatus, EscrowStatus
from payments.tests.factories import create_disputed_pair

pytestmark = pytest.mark.django_db


class TestResolveRelease:
    def test_release_completes_booking(self, disputed_pair, staff_user, mock_stripe_gateway):
        booking, payment, dispute = disputed_pair

        result = DisputeResolver.resolve(
            dispute.pk, DisputeResolution.RELEASE, staff_user.pk, note="Work verified"
        )

        assert result.success
        stored_dispute = Dispute.objects.get(pk=dispute.pk)
        assert stored_dispute.status == DisputeStatus.RESOLVED
        assert stored_dispute.resolution == DisputeResolution.RELEASE
        assert stored_dispute.resolution_note == "Work verified"
        assert stored_dispute.resolved_by_id == staff_user.pk
        assert stored_dispute.resolved_at is not None

        stored_payment = EscrowPayment.objects.get(pk=payment.pk)
        assert stored_payment.status == EscrowStatus.RELEASED
        stored_booking = Booking.objects.get(pk=booking.pk)
        assert stored_booking.status == BookingStatus.COMPLETED
        assert stored_booking.payment_status == BookingPaymentStatus.RELEASED
        mock_stripe_gateway.create_refund.assert_not_called()

    def test_both_parties_notified(self, disputed_pair, staff_user, customer, provider):
        _, _, dispute = disputed_pair

        DisputeResolver.resolve(dispute.pk, DisputeResolution.RELEASE, staff_user.pk)

        resolved = Notification.objects.filter(
            notification_type=NotificationType.DISPUTE_RESOLVED
        )
        assert {n.recipient_id for n in resolved} == {customer.pk, provider.pk}
        assert all(n.payload["resolution"] == "release" for n in resolved)


class TestResolveRefund:
    def test_refund_cancels_booking(self, disputed_pair, staff_user, mock_stripe_gateway):
        booking, payment, dispute = disputed_pair

        result = DisputeResolver.resolve(dispute.pk, DisputeResolution.REFUND, staff_user.pk)

        assert result.success
        kwargs = mock_stripe_gateway.create_refund.call_args.kwargs
        assert kwargs["reference"] == "pi_test_disputed"
        assert kwargs["amount_cents"] == 10_800

        stored_payment = EscrowPayment.objects.get(pk=payment.pk)
        assert stored_payment.status == EscrowStatus.REFUNDED
        assert "Work was not done" in stored_payment.refund_reason
        stored_booking = Booking.objects.get(pk=booking.pk)
        assert stored_booking.status == BookingStatus.CANCELLED
        assert stored_booking.payment_status == BookingPaymentStatus.REFUNDED

    def test_note_becomes_refund_reason(self, disputed_pair, staff_user, mock_stripe_gateway):
        _, payment, dispute = disputed_pair

        DisputeResolver.resolve(
            dispute.pk, DisputeResolution.REFUND, staff_user.pk, note="No-show confirmed"
        )

        assert EscrowPayment.objects.get(pk=payment.pk).refund_reason == "No-show confirmed"
        assert mock_stripe_gateway.create_refund.call_args.kwargs["reason"] == "No-show confirmed"

    def test_gateway_timeout_keeps_dispute_open(
        self, disputed_pair, staff_user, mock_stripe_gateway
    ):
        booking, payment, dispute = disputed_pair
        mock_stripe_gateway.create_refund.side_effect = GatewayTimeoutError(
            "Request timed out", gateway="stripe"
        )

        result = DisputeResolver.resolve(dispute.pk, DisputeResolution.REFUND, staff_user.pk)

        assert result.error_code == "GATEWAY_TIMEOUT"
        assert Dispute.objects.get(pk=dispute.pk).status == DisputeStatus.OPEN
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.DISPUTED
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.DISPUTED
        assert not Notification.objects.filter(
            notification_type=NotificationType.DISPUTE_RESOLVED
        ).exists()


class TestResolveRejections:
    def test_unknown_outcome(self, disputed_pair, staff_user):
        _, _, dispute = disputed_pair

        result = DisputeResolver.resolve(dispute.pk, "split", staff_user.pk)

        assert result.error_code == "VALIDATION_ERROR"
        assert result.details["allowed"] == ["release", "refund"]

    def test_non_staff_resolver(self, disputed_pair, customer):
        _, _, dispute = disputed_pair

        result = DisputeResolver.resolve(dispute.pk, DisputeResolution.RELEASE, customer.pk)

        assert result.error_code == "PERMISSION_DENIED"
        assert Dispute.objects.get(pk=dispute.pk).is_open

    def test_unknown_resolver(self, disputed_pair):
        _, _, dispute = disputed_pair

        result = DisputeResolver.resolve(dispute.pk, DisputeResolution.RELEASE, 999_999)

        assert result.error_code == "PERMISSION_DENIED"

    def test_unknown_dispute(self, staff_user):
        result = DisputeResolver.resolve(uuid.uuid4(), DisputeResolution.RELEASE, staff_user.pk)

        assert result.error_code == "NOT_FOUND"

    def test_already_resolved(self, disputed_pair, staff_user, mock_stripe_gateway):
        _, payment, dispute = disputed_pair
        DisputeResolver.resolve(dispute.pk, DisputeResolution.RELEASE, staff_user.pk)

        result = DisputeResolver.resolve(dispute.pk, DisputeResolution.REFUND, staff_user.pk)

        assert result.error_code == "INVALID_TRANSITION"
        assert EscrowPayment.objects.get(pk=payment.pk).status == EscrowStatus.RELEASED
        mock_stripe_gateway.create_refund.assert_not_called()


class TestOpenDisputes:
    def test_lists_only_open_disputes(self, disputed_pair, staff_user):
        _, _, dispute = disputed_pair
        other_customer = UserFactory()
        _, _, resolved = create_disputed_pair(booking__customer=other_customer)
        Dispute.objects.filter(pk=resolved.pk).update(status=DisputeStatus.RESOLVED)

        assert list(DisputeResolver.open_disputes()) == [dispute]
