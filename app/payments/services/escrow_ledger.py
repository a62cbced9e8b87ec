"""
EscrowLedger: lifecycle of the escrow payment attached to a booking.

Every operation locks the booking and its payment (in that order), checks
the pair is consistent, applies the payment transition together with the
booking transition it implies, checks the resulting pair again and writes
both rows with a versioned UPDATE. Either both rows change or neither does.

Gateway side effects (cancel authorization, refund) run after all
transitions were validated in memory and before anything is written. A
gateway failure or timeout raises and rolls the transaction back, so
local state stays at its last-known-good value. Retries reuse the same
idempotency key.

Two entry styles:

- Public classmethods (create_payment, mark_completed, release, refund,
  open_dispute) own their transaction and return a ServiceResult.
- apply_* classmethods work on a pair the caller has already locked and
  raise domain errors. BookingService, SettlementGateway and
  DisputeResolver compose them inside their own transaction.

Usage:
    from payments.services import EscrowLedger

    result = EscrowLedger.release(payment_id)
    if not result.success:
        logger.warning("Release rejected: %s", result.error_code)
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError
from django.utils import timezone

from bookings.models import BookingStatus
from core.exceptions import BaseApplicationError, PermissionDeniedError, ValidationError
from core.services import ServiceResult
from notifications.models import NotificationType
from notifications.services import NotificationEmitter, PendingNotification
from payments.adapters import IdempotencyKeyGenerator, get_gateway
from payments.consistency import assert_pair_consistent
from payments.exceptions import DuplicatePaymentError, InvalidStateTransitionError
from payments.fees import FeeBreakdown
from payments.locks import ensure_current, lock_booking_pair, lock_payment_pair, save_versioned
from payments.models import Dispute, EscrowPayment
from payments.services.base import LifecycleService
from payments.state_machines import EscrowStatus

if TYPE_CHECKING:
    from typing import Any

    from bookings.models import Booking


class EscrowLedger(LifecycleService):
    """
    Owns the EscrowPayment state machine.

    Payment graph:
        pending -> completed -> released
        pending -> completed -> disputed
        pending -> refunded
        completed -> refunded

    Booking moves implied by each payment move:
        mark_completed: pending booking -> confirmed
        release: pending_completion -> completed
        refund: pending | confirmed | pending_completion -> cancelled
        open_dispute: pending_completion -> disputed
    """

    # =========================================================================
    # Public Operations
    # =========================================================================

    @classmethod
    def create_payment(
        cls,
        booking_id: Any,
        amount_cents: int,
        customer_id: Any,
        provider_id: Any,
        service_id: Any,
        *,
        external_reason: str | None = None,
        external_reference: str = "",
        provider_name: str = "",
        payment_method: str = "",
        completed: bool = False,
    ) -> ServiceResult[EscrowPayment]:
        """
        Create the escrow payment for a booking.

        Args:
            booking_id: Booking to attach the payment to
            amount_cents: Service price; fee and total are derived from it
            customer_id/provider_id/service_id: Must match the booking
            external_reason: Required when completed=True; stored for audit
            external_reference: Gateway session / intent id, if known
            provider_name: Gateway name
            payment_method: Gateway payment method
            completed: Record funds already captured out of band

        Returns:
            ServiceResult with the EscrowPayment. Error codes:
            DUPLICATE_PAYMENT, INVALID_TRANSITION, VALIDATION_ERROR, NOT_FOUND
        """
        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, current = lock_booking_pair(booking_id)
                parties = (booking.customer_id, booking.provider_id, booking.service_id)
                if tuple(map(str, parties)) != tuple(
                    map(str, (customer_id, provider_id, service_id))
                ):
                    raise ValidationError(
                        "Customer, provider and service must match the booking",
                        details={"booking_id": str(booking.pk)},
                    )
                payment = cls.apply_create(
                    booking,
                    current,
                    amount_cents,
                    notifications,
                    external_reason=external_reason,
                    external_reference=external_reference,
                    provider_name=provider_name,
                    payment_method=payment_method,
                    completed=completed,
                )
        except IntegrityError:
            # Lost the race on the one-live-payment-per-booking constraint
            return cls.fail(
                DuplicatePaymentError(
                    f"Booking {booking_id} already has an active payment",
                    details={"booking_id": str(booking_id)},
                ),
                "create payment",
            )
        except BaseApplicationError as exc:
            return cls.fail(exc, "create payment")

        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(payment)

    @classmethod
    def mark_completed(
        cls,
        payment_id: Any,
        *,
        external_reference: str = "",
        payment_method: str = "",
    ) -> ServiceResult[EscrowPayment]:
        """
        Record that funds were captured and are held in escrow.

        Legal only from pending. Error codes: INVALID_TRANSITION, NOT_FOUND
        """
        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, payment = lock_payment_pair(payment_id)
                cls.apply_mark_completed(
                    booking,
                    payment,
                    notifications,
                    external_reference=external_reference,
                    payment_method=payment_method,
                )
        except BaseApplicationError as exc:
            return cls.fail(exc, "mark payment completed")

        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(payment)

    @classmethod
    def release(cls, payment_id: Any, feedback: str = "") -> ServiceResult[EscrowPayment]:
        """
        Release held funds to the provider and complete the booking.

        Legal only from completed. Error codes: INVALID_TRANSITION,
        STALE_RECORD, NOT_FOUND
        """
        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, payment = lock_payment_pair(payment_id)
                cls.apply_release(booking, payment, notifications, feedback=feedback)
        except BaseApplicationError as exc:
            return cls.fail(exc, "release payment")

        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(payment)

    @classmethod
    def refund(
        cls,
        payment_id: Any,
        reason: str,
        actor_id: Any = None,
    ) -> ServiceResult[EscrowPayment]:
        """
        Refund the payment and cancel the booking.

        Legal from pending or completed. Error codes: INVALID_TRANSITION,
        STALE_RECORD, GATEWAY_*, NOT_FOUND
        """
        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, payment = lock_payment_pair(payment_id)
                cls.apply_refund(booking, payment, reason, notifications, actor_id=actor_id)
        except BaseApplicationError as exc:
            return cls.fail(exc, "refund payment")

        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(payment)

    @classmethod
    def open_dispute(
        cls,
        payment_id: Any,
        reason: str,
        description: str,
        actor_id: Any,
        evidence_url: str = "",
    ) -> ServiceResult[Dispute]:
        """
        Freeze the payment and the booking under a new dispute.

        Legal only from completed. Error codes: INVALID_TRANSITION,
        PERMISSION_DENIED, VALIDATION_ERROR, NOT_FOUND
        """
        validation = cls.validate_required(reason=reason)
        if validation is not None:
            return validation

        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, payment = lock_payment_pair(payment_id)
                dispute = cls.apply_open_dispute(
                    booking,
                    payment,
                    reason,
                    description,
                    actor_id,
                    notifications,
                    evidence_url=evidence_url,
                )
        except BaseApplicationError as exc:
            return cls.fail(exc, "open dispute")

        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(dispute)

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get_payment(cls, payment_id: Any) -> EscrowPayment | None:
        return EscrowPayment.objects.filter(pk=payment_id).first()

    @classmethod
    def payments_for_booking(cls, booking_id: Any):
        """All payments of a booking, newest first."""
        return EscrowPayment.objects.filter(booking_id=booking_id).order_by("-created_at")

    # =========================================================================
    # Locked-Pair Operations
    # =========================================================================

    @classmethod
    def apply_create(
        cls,
        booking: Booking,
        current: EscrowPayment | None,
        amount_cents: int,
        notifications: list[PendingNotification],
        *,
        external_reason: str | None = None,
        external_reference: str = "",
        provider_name: str = "",
        payment_method: str = "",
        completed: bool = False,
    ) -> EscrowPayment:
        """
        Insert a payment for a locked booking.

        With completed=True the payment skips pending. This bypass needs an
        explicit external_reason, and a pending booking is confirmed with it.
        """
        assert_pair_consistent(booking, current)

        if current is not None and current.is_live:
            raise DuplicatePaymentError(
                f"Booking {booking.pk} already has an active payment",
                details={
                    "booking_id": str(booking.pk),
                    "payment_id": str(current.pk),
                    "payment_status": current.status,
                },
            )
        if not booking.is_active:
            raise InvalidStateTransitionError(
                f"Cannot create a payment for a {booking.status} booking",
                details={
                    "model": "Booking",
                    "pk": str(booking.pk),
                    "current_state": booking.status,
                    "action": "create_payment",
                },
            )
        if amount_cents is None or amount_cents <= 0:
            raise ValidationError(
                "amount_cents must be positive",
                details={"amount_cents": amount_cents},
            )
        external_reason = (external_reason or "").strip()
        if completed and not external_reason:
            raise ValidationError(
                "An external_reason is required to record an already-settled payment",
                details={"booking_id": str(booking.pk)},
            )

        fees = FeeBreakdown.for_amount(amount_cents)
        payment = EscrowPayment(
            booking=booking,
            service_id=booking.service_id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            amount_cents=fees.amount_cents,
            platform_fee_cents=fees.platform_fee_cents,
            total_amount_cents=fees.total_amount_cents,
            currency=booking.service.currency,
            provider_name=provider_name,
            payment_method=payment_method,
            external_reference=external_reference,
            external_reason=external_reason,
        )
        if completed:
            cls._capture(booking, payment)

        booking.payment_status = payment.status
        assert_pair_consistent(booking, payment)

        save_versioned(payment)
        save_versioned(booking)

        cls.get_logger().info(
            "Escrow payment created",
            extra={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "payment_status": payment.status,
                "total_amount_cents": payment.total_amount_cents,
                "external_reason": external_reason or None,
            },
        )
        if completed:
            notifications.append(cls._payment_received_notification(booking, payment))
        return payment

    @classmethod
    def apply_mark_completed(
        cls,
        booking: Booking,
        payment: EscrowPayment,
        notifications: list[PendingNotification],
        *,
        external_reference: str = "",
        payment_method: str = "",
    ) -> None:
        """pending -> completed; confirms the booking if it is still pending."""
        assert_pair_consistent(booking, payment)

        cls._capture(booking, payment)
        if external_reference:
            payment.external_reference = external_reference
        if payment_method:
            payment.payment_method = payment_method

        booking.payment_status = payment.status
        assert_pair_consistent(booking, payment)

        save_versioned(booking)
        save_versioned(payment)

        cls.get_logger().info(
            "Escrow payment completed",
            extra={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "external_reference": payment.external_reference,
            },
        )
        notifications.append(cls._payment_received_notification(booking, payment))

    @classmethod
    def apply_release(
        cls,
        booking: Booking,
        payment: EscrowPayment,
        notifications: list[PendingNotification],
        *,
        feedback: str = "",
    ) -> None:
        """completed -> released; booking pending_completion -> completed."""
        assert_pair_consistent(booking, payment)

        cls.apply_transition(payment, "release")
        cls.apply_transition(booking, "complete", feedback)
        booking.payment_status = payment.status
        assert_pair_consistent(booking, payment)

        save_versioned(booking)
        save_versioned(payment)

        cls.get_logger().info(
            "Escrow payment released",
            extra={"booking_id": str(booking.pk), "payment_id": str(payment.pk)},
        )
        notifications.append(
            PendingNotification(
                recipient_id=payment.provider_id,
                notification_type=NotificationType.PAYMENT_RELEASED,
                title="Payment released",
                message="The customer confirmed completion. Your payment has been released.",
                payload=cls._payload(booking, payment),
                actor_id=booking.customer_id,
                idempotency_key=f"payment:{payment.pk}:released",
            )
        )

    @classmethod
    def apply_refund(
        cls,
        booking: Booking,
        payment: EscrowPayment,
        reason: str,
        notifications: list[PendingNotification],
        *,
        actor_id: Any = None,
    ) -> None:
        """
        pending | completed -> refunded; booking -> cancelled.

        A pending payment with a gateway reference has its authorization
        cancelled; a completed one is refunded at the gateway in full.
        """
        assert_pair_consistent(booking, payment)

        captured = payment.status == EscrowStatus.COMPLETED
        cls.apply_transition(payment, "refund", reason)
        cls.apply_transition(booking, "cancel", reason)
        booking.payment_status = payment.status
        assert_pair_consistent(booking, payment)

        ensure_current(booking, payment)
        cls.reverse_funds(payment, captured=captured, reason=reason)

        save_versioned(booking)
        save_versioned(payment)

        cls.get_logger().info(
            "Escrow payment refunded",
            extra={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "captured": captured,
            },
        )
        notifications.append(
            PendingNotification(
                recipient_id=payment.customer_id,
                notification_type=NotificationType.PAYMENT_REFUNDED,
                title="Payment refunded",
                message=(
                    "Your booking was cancelled and your payment refunded."
                    if captured
                    else "Your booking was cancelled. You have not been charged."
                ),
                payload={**cls._payload(booking, payment), "reason": reason},
                actor_id=actor_id,
                idempotency_key=f"payment:{payment.pk}:refunded",
            )
        )

    @classmethod
    def apply_open_dispute(
        cls,
        booking: Booking,
        payment: EscrowPayment,
        reason: str,
        description: str,
        actor_id: Any,
        notifications: list[PendingNotification],
        *,
        evidence_url: str = "",
    ) -> Dispute:
        """completed -> disputed; booking pending_completion -> disputed."""
        assert_pair_consistent(booking, payment)

        if not booking.is_party(actor_id):
            raise PermissionDeniedError(
                "Only the customer or the provider can dispute this payment",
                details={"booking_id": str(booking.pk)},
            )

        cls.apply_transition(payment, "open_dispute")
        cls.apply_transition(booking, "dispute")
        booking.payment_status = payment.status
        assert_pair_consistent(booking, payment)

        save_versioned(booking)
        save_versioned(payment)

        dispute = Dispute.objects.create(
            payment=payment,
            booking=booking,
            created_by_id=actor_id,
            customer_id=booking.customer_id,
            provider_id=booking.provider_id,
            reason=reason,
            description=description,
            evidence_url=evidence_url,
        )

        cls.get_logger().info(
            "Dispute opened",
            extra={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "dispute_id": str(dispute.pk),
            },
        )

        payload = {**cls._payload(booking, payment), "dispute_id": str(dispute.pk)}
        counterparty_id = (
            booking.provider_id
            if str(actor_id) == str(booking.customer_id)
            else booking.customer_id
        )
        notifications.extend(
            [
                PendingNotification(
                    recipient_id=counterparty_id,
                    notification_type=NotificationType.DISPUTE_OPENED,
                    title="Dispute opened",
                    message=f"A dispute was opened on your booking: {reason}",
                    payload=payload,
                    actor_id=actor_id,
                    idempotency_key=f"dispute:{dispute.pk}:opened:counterparty",
                ),
                PendingNotification(
                    recipient_id=actor_id,
                    notification_type=NotificationType.DISPUTE_OPENED,
                    title="Dispute received",
                    message="Your dispute was received. Funds are frozen until it is resolved.",
                    payload=payload,
                    idempotency_key=f"dispute:{dispute.pk}:opened:initiator",
                ),
                PendingNotification(
                    recipient_id=None,
                    notification_type=NotificationType.DISPUTE_OPENED,
                    title="Dispute needs resolution",
                    message=f"Dispute {dispute.pk} opened: {reason}",
                    payload=payload,
                    actor_id=actor_id,
                    idempotency_key=f"dispute:{dispute.pk}:opened:operators",
                    to_operators=True,
                ),
            ]
        )
        return dispute

    # =========================================================================
    # Gateway Side Effects
    # =========================================================================

    @classmethod
    def reverse_funds(cls, payment: EscrowPayment, *, captured: bool, reason: str = "") -> None:
        """
        Undo the payment at its gateway.

        Raises:
            GatewayError: The gateway call failed; nothing has been written
        """
        log_context = {
            "payment_id": str(payment.pk),
            "provider_name": payment.provider_name or None,
            "captured": captured,
        }
        if not payment.external_reference:
            if captured:
                cls.get_logger().warning(
                    "Refunding a payment with no gateway reference; settle out of band",
                    extra=log_context,
                )
            return

        gateway = get_gateway(payment.provider_name)
        if captured:
            gateway.create_refund(
                reference=payment.external_reference,
                amount_cents=payment.total_amount_cents,
                idempotency_key=IdempotencyKeyGenerator.generate("refund", payment.pk),
                reason=reason,
            )
        else:
            gateway.cancel_authorization(
                payment.external_reference,
                idempotency_key=IdempotencyKeyGenerator.generate("cancel", payment.pk),
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _capture(cls, booking: Booking, payment: EscrowPayment) -> None:
        cls.apply_transition(payment, "mark_completed")
        payment.release_date = timezone.now() + timedelta(days=settings.ESCROW_HOLD_DAYS)
        if booking.status == BookingStatus.PENDING:
            cls.apply_transition(booking, "confirm")

    @staticmethod
    def _payload(booking: Booking, payment: EscrowPayment) -> dict[str, Any]:
        return {
            "booking_id": str(booking.pk),
            "payment_id": str(payment.pk),
            "booking_status": booking.status,
            "payment_status": payment.status,
        }

    @classmethod
    def _payment_received_notification(
        cls,
        booking: Booking,
        payment: EscrowPayment,
    ) -> PendingNotification:
        return PendingNotification(
            recipient_id=payment.provider_id,
            notification_type=NotificationType.PAYMENT_RECEIVED,
            title="New booking payment",
            message="Payment for your booking is now held in escrow.",
            payload={
                **cls._payload(booking, payment),
                "total_amount_cents": payment.total_amount_cents,
            },
            idempotency_key=f"payment:{payment.pk}:completed",
        )
