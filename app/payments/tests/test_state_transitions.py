"""
Tests for state machine transitions using django-fsm.

Transitions are exercised on unsaved instances; persistence goes through
payments.locks.save_versioned and is covered by the service tests.
"""

import pytest
from django_fsm import TransitionNotAllowed, can_proceed

from authentication.tests.factories import UserFactory
from payments.models import Dispute, EscrowPayment
from payments.state_machines import DisputeResolution, DisputeStatus, EscrowStatus


def payment_in(status):
    return EscrowPayment(
        status=status,
        amount_cents=10_000,
        platform_fee_cents=800,
        total_amount_cents=10_800,
    )


# =============================================================================
# EscrowPayment State Transition Tests
# =============================================================================


class TestEscrowPaymentTransitions:
    """Tests for EscrowPayment state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_pending_to_completed(self):
        payment = payment_in(EscrowStatus.PENDING)

        payment.mark_completed()

        assert payment.status == EscrowStatus.COMPLETED
        assert payment.completed_at is not None

    def test_completed_to_released(self):
        payment = payment_in(EscrowStatus.COMPLETED)

        payment.release()

        assert payment.status == EscrowStatus.RELEASED
        assert payment.released_at is not None

    @pytest.mark.parametrize("source", [EscrowStatus.PENDING, EscrowStatus.COMPLETED])
    def test_refund(self, source):
        payment = payment_in(source)

        payment.refund(reason="Customer cancelled")

        assert payment.status == EscrowStatus.REFUNDED
        assert payment.refund_reason == "Customer cancelled"
        assert payment.refunded_at is not None

    def test_completed_to_disputed(self):
        payment = payment_in(EscrowStatus.COMPLETED)

        payment.open_dispute()

        assert payment.status == EscrowStatus.DISPUTED
        assert payment.disputed_at is not None

    def test_dispute_resolved_for_provider(self):
        payment = payment_in(EscrowStatus.DISPUTED)

        payment.resolve_release()

        assert payment.status == EscrowStatus.RELEASED

    def test_dispute_resolved_for_customer(self):
        payment = payment_in(EscrowStatus.DISPUTED)

        payment.resolve_refund(reason="No-show")

        assert payment.status == EscrowStatus.REFUNDED
        assert payment.refund_reason == "No-show"

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    def test_cannot_release_uncaptured_funds(self):
        with pytest.raises(TransitionNotAllowed):
            payment_in(EscrowStatus.PENDING).release()

    def test_cannot_dispute_uncaptured_funds(self):
        with pytest.raises(TransitionNotAllowed):
            payment_in(EscrowStatus.PENDING).open_dispute()

    def test_disputed_payment_is_frozen(self):
        payment = payment_in(EscrowStatus.DISPUTED)

        assert not can_proceed(payment.release)
        assert not can_proceed(payment.refund)
        assert not can_proceed(payment.mark_completed)

    @pytest.mark.parametrize("terminal", [EscrowStatus.RELEASED, EscrowStatus.REFUNDED])
    def test_terminal_states_have_no_exits(self, terminal):
        payment = payment_in(terminal)

        for method in (
            payment.mark_completed,
            payment.release,
            payment.refund,
            payment.open_dispute,
            payment.resolve_release,
            payment.resolve_refund,
        ):
            assert not can_proceed(method)

    def test_resolution_requires_open_dispute(self):
        with pytest.raises(TransitionNotAllowed):
            payment_in(EscrowStatus.COMPLETED).resolve_release()

    def test_status_cannot_be_assigned_directly(self):
        payment = payment_in(EscrowStatus.PENDING)

        with pytest.raises(AttributeError):
            payment.status = EscrowStatus.RELEASED


class TestEscrowStatusGroups:
    def test_live_states(self):
        assert set(EscrowStatus.live_states()) == {
            EscrowStatus.PENDING,
            EscrowStatus.COMPLETED,
            EscrowStatus.DISPUTED,
        }

    def test_is_live(self):
        assert payment_in(EscrowStatus.DISPUTED).is_live
        assert not payment_in(EscrowStatus.REFUNDED).is_live


# =============================================================================
# Dispute Tests
# =============================================================================


class TestDisputeResolution:
    def test_mark_resolved_records_outcome(self, db):
        operator = UserFactory(is_staff=True)
        dispute = Dispute(reason="Work was not done")

        dispute.mark_resolved(DisputeResolution.REFUND, operator, note="No-show")

        assert dispute.status == DisputeStatus.RESOLVED
        assert not dispute.is_open
        assert dispute.resolution == DisputeResolution.REFUND
        assert dispute.resolution_note == "No-show"
        assert dispute.resolved_by == operator
        assert dispute.resolved_at is not None
