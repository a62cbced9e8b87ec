"""
BookingService: actor-checked booking transitions.

Each operation locks the booking and its escrow payment, checks the actor
and the current pair, applies the booking transition (and the ledger
operation it implies) and writes both rows in one transaction. Expected
business failures come back as ServiceResult failures; storage errors
propagate.

Who may do what:

    customer  request_booking       -> pending (+ pending payment)
    provider  confirm               pending -> confirmed
    provider  decline               pending | confirmed -> cancelled (+ refund)
    provider  cancel_by_provider    pending | confirmed -> cancelled (+ refund)
    provider  mark_service_delivered confirmed -> pending_completion
    customer  confirm_completion    pending_completion -> completed (+ release)
    customer  dispute               pending_completion -> disputed (+ dispute)
    customer  cancel_by_customer    pending -> cancelled (+ refund)

Usage:
    from bookings.services import BookingService

    result = BookingService.confirm(booking_id, request.user)
    if result.success:
        booking, payment = result.data.booking, result.data.payment
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Q

from authentication.services import VerificationGate
from bookings.exceptions import ActiveBookingExistsError, ProviderNotVerifiedError
from bookings.models import Booking, BookingStatus, Service
from bookings.types import BookingWithPayment
from core.exceptions import (
    BaseApplicationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import ServiceResult
from notifications.models import NotificationType
from notifications.services import NotificationEmitter, PendingNotification
from payments.consistency import assert_pair_consistent
from payments.exceptions import InvalidStateTransitionError, PaymentRequiredError
from payments.locks import lock_booking_pair, save_versioned
from payments.services import EscrowLedger, LifecycleService
from payments.state_machines import EscrowStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from authentication.models import User
    from payments.models import EscrowPayment

    Operation = Callable[
        [Booking, EscrowPayment | None, list[PendingNotification]], BookingWithPayment
    ]


class BookingService(LifecycleService):
    """Booking state machine with actor rules, composed with the EscrowLedger."""

    # =========================================================================
    # Customer: Request
    # =========================================================================

    @classmethod
    def request_booking(
        cls,
        customer: User,
        service_id: Any,
        notes: str = "",
    ) -> ServiceResult[BookingWithPayment]:
        """
        Create a pending booking and its pending escrow payment.

        Error codes: NOT_FOUND, VALIDATION_ERROR, PROVIDER_NOT_VERIFIED,
        ACTIVE_BOOKING_EXISTS
        """
        notifications: list[PendingNotification] = []
        try:
            service = Service.objects.filter(pk=service_id).first()
            if service is None or not service.is_active:
                raise NotFoundError(
                    f"Service {service_id} not found",
                    details={"service_id": str(service_id)},
                )
            if service.provider_id == customer.pk:
                raise ValidationError(
                    "You cannot book your own service",
                    details={"service_id": str(service.pk)},
                )
            if not VerificationGate.is_provider_verified(service.provider_id):
                raise ProviderNotVerifiedError(
                    "This provider has not completed identity verification",
                    details={
                        "service_id": str(service.pk),
                        "provider_id": str(service.provider_id),
                    },
                )

            with cls.atomic():
                cls._ensure_no_active_booking(service, customer)
                booking = Booking(
                    service=service,
                    customer=customer,
                    provider_id=service.provider_id,
                    notes=notes,
                )
                save_versioned(booking)
                payment = EscrowLedger.apply_create(
                    booking,
                    None,
                    service.price_cents,
                    notifications,
                )
        except IntegrityError:
            # Lost the race on the one-active-booking constraint
            return cls.fail(
                ActiveBookingExistsError(
                    "You already have an active booking for this service",
                    details={"service_id": str(service_id)},
                ),
                "request booking",
            )
        except BaseApplicationError as exc:
            return cls.fail(exc, "request booking")

        cls.get_logger().info(
            "Booking requested",
            extra={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "service_id": str(service.pk),
            },
        )
        notifications.append(
            PendingNotification(
                recipient_id=booking.provider_id,
                notification_type=NotificationType.BOOKING_REQUESTED,
                title="New booking request",
                message=f"You have a new booking request for {service.title}.",
                payload=cls._payload(booking, payment),
                actor_id=customer.pk,
                idempotency_key=f"booking:{booking.pk}:requested",
            )
        )
        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(BookingWithPayment(booking=booking, payment=payment))

    # =========================================================================
    # Provider Actions
    # =========================================================================

    @classmethod
    def confirm(
        cls,
        booking_id: Any,
        actor: User,
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """pending -> confirmed. Error codes: PERMISSION_DENIED, INVALID_TRANSITION"""

        def operation(booking, payment, notifications):
            cls._require_provider(booking, actor)
            cls.apply_transition(booking, "confirm")
            assert_pair_consistent(booking, payment)
            save_versioned(booking)
            notifications.append(
                cls._notify_customer(
                    booking,
                    payment,
                    NotificationType.BOOKING_CONFIRMED,
                    "Booking confirmed",
                    "Your booking was confirmed by the provider.",
                    actor,
                )
            )
            return BookingWithPayment(booking=booking, payment=payment)

        return cls._run("confirm booking", booking_id, expected_version, operation)

    @classmethod
    def decline(
        cls,
        booking_id: Any,
        actor: User,
        reason: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """
        Provider turns the booking down: pending | confirmed -> cancelled.

        The escrow payment is refunded. Error codes: PERMISSION_DENIED,
        INVALID_TRANSITION, GATEWAY_*
        """
        return cls._provider_cancel(
            booking_id,
            actor,
            reason or "Declined by provider",
            NotificationType.BOOKING_DECLINED,
            "decline booking",
            expected_version,
        )

    @classmethod
    def cancel_by_provider(
        cls,
        booking_id: Any,
        actor: User,
        reason: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """
        Provider cancels: pending | confirmed -> cancelled.

        The escrow payment is refunded. Error codes: PERMISSION_DENIED,
        INVALID_TRANSITION, GATEWAY_*
        """
        return cls._provider_cancel(
            booking_id,
            actor,
            reason or "Cancelled by provider",
            NotificationType.BOOKING_CANCELLED,
            "provider cancel booking",
            expected_version,
        )

    @classmethod
    def mark_service_delivered(
        cls,
        booking_id: Any,
        actor: User,
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """
        confirmed -> pending_completion. No money moves.

        Error codes: PERMISSION_DENIED, INVALID_TRANSITION
        """

        def operation(booking, payment, notifications):
            cls._require_provider(booking, actor)
            cls.apply_transition(booking, "mark_delivered")
            assert_pair_consistent(booking, payment)
            save_versioned(booking)
            notifications.append(
                cls._notify_customer(
                    booking,
                    payment,
                    NotificationType.SERVICE_DELIVERED,
                    "Service delivered",
                    "The provider marked your booking as delivered. "
                    "Please confirm completion.",
                    actor,
                )
            )
            return BookingWithPayment(booking=booking, payment=payment)

        return cls._run("mark service delivered", booking_id, expected_version, operation)

    # =========================================================================
    # Customer Actions
    # =========================================================================

    @classmethod
    def confirm_completion(
        cls,
        booking_id: Any,
        actor: User,
        feedback: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """
        pending_completion -> completed, releasing the held funds.

        Error codes: PERMISSION_DENIED, INVALID_TRANSITION, PAYMENT_REQUIRED
        """

        def operation(booking, payment, notifications):
            cls._require_customer(booking, actor)
            cls._require_status(booking, BookingStatus.PENDING_COMPLETION, "complete")
            cls._require_funds_held(booking, payment)
            EscrowLedger.apply_release(booking, payment, notifications, feedback=feedback)
            return BookingWithPayment(booking=booking, payment=payment)

        return cls._run("confirm completion", booking_id, expected_version, operation)

    @classmethod
    def dispute(
        cls,
        booking_id: Any,
        actor: User,
        reason: str,
        description: str = "",
        evidence_url: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """
        pending_completion -> disputed, freezing the held funds.

        Error codes: VALIDATION_ERROR, PERMISSION_DENIED, INVALID_TRANSITION,
        PAYMENT_REQUIRED
        """
        validation = cls.validate_required(reason=reason)
        if validation is not None:
            return validation

        def operation(booking, payment, notifications):
            cls._require_customer(booking, actor)
            cls._require_status(booking, BookingStatus.PENDING_COMPLETION, "dispute")
            cls._require_funds_held(booking, payment)
            dispute = EscrowLedger.apply_open_dispute(
                booking,
                payment,
                reason,
                description,
                actor.pk,
                notifications,
                evidence_url=evidence_url,
            )
            return BookingWithPayment(booking=booking, payment=payment, dispute=dispute)

        return cls._run("dispute booking", booking_id, expected_version, operation)

    @classmethod
    def cancel_by_customer(
        cls,
        booking_id: Any,
        actor: User,
        reason: str = "",
        expected_version: int | None = None,
    ) -> ServiceResult[BookingWithPayment]:
        """
        Self-service cancel: pending -> cancelled, refunding any payment.

        Error codes: PERMISSION_DENIED, INVALID_TRANSITION, GATEWAY_*
        """
        reason = reason or "Cancelled by customer"

        def operation(booking, payment, notifications):
            cls._require_customer(booking, actor)
            cls._require_status(booking, BookingStatus.PENDING, "cancel")
            cls._cancel_with_refund(booking, payment, reason, actor, notifications)
            notifications.append(
                PendingNotification(
                    recipient_id=booking.provider_id,
                    notification_type=NotificationType.BOOKING_CANCELLED,
                    title="Booking cancelled",
                    message="The customer cancelled their booking.",
                    payload={**cls._payload(booking, payment), "reason": reason},
                    actor_id=actor.pk,
                    idempotency_key=f"booking:{booking.pk}:cancelled",
                )
            )
            return BookingWithPayment(booking=booking, payment=payment)

        return cls._run("customer cancel booking", booking_id, expected_version, operation)

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def bookings_for_user(user: User):
        """Bookings where the user is the customer or the provider."""
        return (
            Booking.objects.filter(Q(customer=user) | Q(provider=user))
            .select_related("service", "customer", "provider")
            .prefetch_related("payments")
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @classmethod
    def _run(
        cls,
        context: str,
        booking_id: Any,
        expected_version: int | None,
        operation: Operation,
    ) -> ServiceResult[BookingWithPayment]:
        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, payment = lock_booking_pair(booking_id, expected_version)
                assert_pair_consistent(booking, payment)
                result = operation(booking, payment, notifications)
        except BaseApplicationError as exc:
            return cls.fail(exc, context)

        cls.get_logger().info(
            f"Booking operation succeeded: {context}",
            extra={
                "booking_id": str(result.booking.pk),
                "booking_status": result.booking.status,
            },
        )
        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(result)

    @classmethod
    def _provider_cancel(
        cls,
        booking_id: Any,
        actor: User,
        reason: str,
        notification_type: str,
        context: str,
        expected_version: int | None,
    ) -> ServiceResult[BookingWithPayment]:
        declined = notification_type == NotificationType.BOOKING_DECLINED
        verb = "declined" if declined else "cancelled"

        def operation(booking, payment, notifications):
            cls._require_provider(booking, actor)
            if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
                raise InvalidStateTransitionError(
                    f"Cannot cancel Booking from '{booking.status}' state",
                    details={
                        "model": "Booking",
                        "pk": str(booking.pk),
                        "current_state": booking.status,
                        "action": "cancel",
                    },
                )
            cls._cancel_with_refund(booking, payment, reason, actor, notifications)
            notifications.append(
                cls._notify_customer(
                    booking,
                    payment,
                    notification_type,
                    f"Booking {verb}",
                    f"Your booking was {verb} by the provider.",
                    actor,
                    reason=reason,
                )
            )
            return BookingWithPayment(booking=booking, payment=payment)

        return cls._run(context, booking_id, expected_version, operation)

    @classmethod
    def _cancel_with_refund(
        cls,
        booking: Booking,
        payment: EscrowPayment | None,
        reason: str,
        actor: User,
        notifications: list[PendingNotification],
    ) -> None:
        if payment is not None:
            EscrowLedger.apply_refund(booking, payment, reason, notifications, actor_id=actor.pk)
            return
        cls.apply_transition(booking, "cancel", reason)
        assert_pair_consistent(booking, None)
        save_versioned(booking)

    @staticmethod
    def _require_customer(booking: Booking, actor: User) -> None:
        if booking.customer_id != actor.pk:
            raise PermissionDeniedError(
                "Only the customer can perform this action",
                details={"booking_id": str(booking.pk)},
            )

    @staticmethod
    def _require_provider(booking: Booking, actor: User) -> None:
        if booking.provider_id != actor.pk:
            raise PermissionDeniedError(
                "Only the provider can perform this action",
                details={"booking_id": str(booking.pk)},
            )

    @staticmethod
    def _require_status(booking: Booking, status: str, action: str) -> None:
        if booking.status != status:
            raise InvalidStateTransitionError(
                f"Cannot {action} Booking from '{booking.status}' state",
                details={
                    "model": "Booking",
                    "pk": str(booking.pk),
                    "current_state": booking.status,
                    "action": action,
                },
            )

    @staticmethod
    def _require_funds_held(booking: Booking, payment: EscrowPayment | None) -> None:
        if payment is None or payment.status != EscrowStatus.COMPLETED:
            raise PaymentRequiredError(
                "Payment has not been received for this booking yet",
                details={
                    "booking_id": str(booking.pk),
                    "payment_status": payment.status if payment else None,
                },
            )

    @staticmethod
    def _ensure_no_active_booking(service: Service, customer: User) -> None:
        existing = (
            Booking.objects.filter(
                service=service,
                customer=customer,
                status__in=BookingStatus.active_states(),
            )
            .values_list("pk", flat=True)
            .first()
        )
        if existing is not None:
            raise ActiveBookingExistsError(
                "You already have an active booking for this service",
                details={"service_id": str(service.pk), "booking_id": str(existing)},
            )

    @staticmethod
    def _payload(booking: Booking, payment: EscrowPayment | None) -> dict[str, Any]:
        return {
            "booking_id": str(booking.pk),
            "payment_id": str(payment.pk) if payment else None,
            "booking_status": booking.status,
        }

    @classmethod
    def _notify_customer(
        cls,
        booking: Booking,
        payment: EscrowPayment | None,
        notification_type: str,
        title: str,
        message: str,
        actor: User,
        reason: str = "",
    ) -> PendingNotification:
        payload = cls._payload(booking, payment)
        if reason:
            payload["reason"] = reason
        return PendingNotification(
            recipient_id=booking.customer_id,
            notification_type=notification_type,
            title=title,
            message=message,
            payload=payload,
            actor_id=actor.pk,
            idempotency_key=f"booking:{booking.pk}:{notification_type}",
        )
