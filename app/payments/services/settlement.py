"""
SettlementGateway: applies gateway-confirmed payments to the ledger.

Inbound settlement events (checkout completed, payment succeeded) arrive
at least once and in any order. Each is applied under the booking/payment
lock and checked against what is already stored, so replays are no-ops:

    payment pending                       -> record reference, mark completed,
                                             confirm a pending booking
    payment settled, same or no reference -> no-op (replay)
    payment settled, other reference      -> DUPLICATE_PAYMENT + operator alert
    payment refunded                      -> INVALID_TRANSITION + operator alert
    no payment, booking pending/confirmed -> create payment already completed
    reported amount != total              -> CONSISTENCY_ERROR

Outbound, it starts hosted checkouts and drives the periodic
reconciliation that catches webhooks that never arrived.

Usage:
    from payments.services import SettlementGateway

    result = SettlementGateway.on_checkout_completed(
        event_id="evt_123",
        booking_id=booking.id,
        external_reference="pi_123",
        amount_cents=10800,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from bookings.models import BookingStatus
from core.exceptions import BaseApplicationError, NotFoundError, PermissionDeniedError
from core.services import ServiceResult
from notifications.services import NotificationEmitter, PendingNotification
from payments.adapters import (
    CheckoutParams,
    CheckoutSessionResult,
    IdempotencyKeyGenerator,
    get_gateway,
    select_payment_provider,
)
from payments.consistency import assert_pair_consistent
from payments.exceptions import (
    ConsistencyError,
    DuplicatePaymentError,
    GatewayError,
    InvalidStateTransitionError,
)
from payments.fees import FeeBreakdown
from payments.locks import lock_booking_pair, save_versioned
from payments.models import EscrowPayment
from payments.services.base import LifecycleService
from payments.services.escrow_ledger import EscrowLedger
from payments.state_machines import EscrowStatus, PaymentProvider

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User
    from bookings.models import Booking


# Failures that mean money moved at the gateway without a local home for it
_ALERT_ERROR_CODES = frozenset({"DUPLICATE_PAYMENT", "INVALID_TRANSITION"})


@dataclass
class SettlementOutcome:
    """
    What a settlement event did.

    Attributes:
        action: "completed", "created" or "replay"
        booking: Booking after the event
        payment: EscrowPayment after the event
    """

    action: str
    booking: Booking
    payment: EscrowPayment


@dataclass
class ReconciliationSummary:
    checked: int = 0
    settled: int = 0
    still_pending: int = 0
    failed: int = 0


class SettlementGateway(LifecycleService):
    """Idempotent bridge from gateway events to the EscrowLedger."""

    # =========================================================================
    # Inbound Settlement
    # =========================================================================

    @classmethod
    def on_checkout_completed(
        cls,
        event_id: str,
        booking_id: Any,
        external_reference: str,
        amount_cents: int | None = None,
        provider_name: str = PaymentProvider.STRIPE,
        payment_method: str = "",
        session_id: str | None = None,
    ) -> ServiceResult[SettlementOutcome]:
        """
        A hosted checkout finished and the gateway captured the funds.

        Args:
            event_id: Gateway event id (used for audit and alert dedupe)
            booking_id: Booking id carried in the checkout metadata
            external_reference: Payment intent / transaction reference
            amount_cents: Amount the gateway reports as paid, if known
            provider_name: Gateway name
            payment_method: Gateway payment method type
            session_id: Checkout session id, matched as an earlier reference
        """
        return cls._settle(
            event_id=event_id,
            booking_id=booking_id,
            reference=external_reference,
            amount_cents=amount_cents,
            provider_name=provider_name,
            payment_method=payment_method,
            aliases=(session_id,) if session_id else (),
            context="checkout completed",
        )

    @classmethod
    def on_payment_intent_succeeded(
        cls,
        event_id: str,
        external_reference: str,
        booking_id: Any = None,
        amount_cents: int | None = None,
        provider_name: str = PaymentProvider.STRIPE,
        payment_method: str = "",
    ) -> ServiceResult[SettlementOutcome]:
        """
        A payment intent succeeded.

        When the event carries no booking id, the booking is found through
        a payment already holding the reference.
        """
        if booking_id is None:
            booking_id = (
                EscrowPayment.objects.filter(external_reference=external_reference)
                .order_by("-created_at")
                .values_list("booking_id", flat=True)
                .first()
            )
            if booking_id is None:
                return cls.fail(
                    NotFoundError(
                        f"No booking found for payment reference {external_reference}",
                        details={"external_reference": external_reference},
                    ),
                    "payment intent succeeded",
                )

        return cls._settle(
            event_id=event_id,
            booking_id=booking_id,
            reference=external_reference,
            amount_cents=amount_cents,
            provider_name=provider_name,
            payment_method=payment_method,
            aliases=(),
            context="payment intent succeeded",
        )

    @classmethod
    def _settle(
        cls,
        *,
        event_id: str,
        booking_id: Any,
        reference: str,
        amount_cents: int | None,
        provider_name: str,
        payment_method: str,
        aliases: tuple[str, ...],
        context: str,
    ) -> ServiceResult[SettlementOutcome]:
        log_context = {
            "event_id": event_id,
            "booking_id": str(booking_id),
            "external_reference": reference,
            "provider_name": provider_name,
        }
        notifications: list[PendingNotification] = []
        try:
            with cls.atomic():
                booking, payment = lock_booking_pair(booking_id)
                assert_pair_consistent(booking, payment)

                if payment is None:
                    action = "created"
                    payment = cls._create_settled(
                        booking,
                        event_id=event_id,
                        reference=reference,
                        amount_cents=amount_cents,
                        provider_name=provider_name,
                        payment_method=payment_method,
                        notifications=notifications,
                    )

                elif payment.status == EscrowStatus.PENDING:
                    action = "completed"
                    cls._check_amount(booking, payment.total_amount_cents, amount_cents)
                    payment.provider_name = provider_name
                    payment.set_meta("settled_by_event", event_id)
                    EscrowLedger.apply_mark_completed(
                        booking,
                        payment,
                        notifications,
                        external_reference=reference,
                        payment_method=payment_method,
                    )

                elif payment.status in EscrowStatus.settled_states():
                    known = {"", reference, *aliases}
                    if payment.external_reference not in known:
                        raise DuplicatePaymentError(
                            f"Booking {booking.pk} is already paid under a different reference",
                            details={
                                "booking_id": str(booking.pk),
                                "payment_id": str(payment.pk),
                                "stored_reference": payment.external_reference,
                                "incoming_reference": reference,
                            },
                        )
                    action = "replay"

                else:
                    raise InvalidStateTransitionError(
                        f"Payment received for booking {booking.pk} whose payment is "
                        f"{payment.status}; manual refund required",
                        details={
                            "model": "EscrowPayment",
                            "pk": str(payment.pk),
                            "current_state": payment.status,
                            "action": "settle",
                            "incoming_reference": reference,
                        },
                    )
        except BaseApplicationError as exc:
            if exc.error_code in _ALERT_ERROR_CODES:
                NotificationEmitter.alert_operators(
                    f"Settlement for booking {booking_id} could not be applied: {exc.message}",
                    payload={**log_context, **exc.details, "error_code": exc.error_code},
                    title="Unapplied gateway payment",
                    idempotency_key=f"settlement:{provider_name}:{event_id}:{exc.error_code}",
                )
            return cls.fail(exc, context)

        if action == "replay":
            cls.get_logger().info("Settlement replay ignored", extra=log_context)
        else:
            cls.get_logger().info(
                "Settlement applied",
                extra={**log_context, "action": action, "payment_id": str(payment.pk)},
            )
        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(
            SettlementOutcome(action=action, booking=booking, payment=payment)
        )

    @classmethod
    def _create_settled(
        cls,
        booking: Booking,
        *,
        event_id: str,
        reference: str,
        amount_cents: int | None,
        provider_name: str,
        payment_method: str,
        notifications: list[PendingNotification],
    ) -> EscrowPayment:
        if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise InvalidStateTransitionError(
                f"Payment received for a {booking.status} booking; manual refund required",
                details={
                    "model": "Booking",
                    "pk": str(booking.pk),
                    "current_state": booking.status,
                    "action": "settle",
                    "incoming_reference": reference,
                },
            )
        price_cents = booking.service.price_cents
        expected_cents = FeeBreakdown.for_amount(price_cents).total_amount_cents
        cls._check_amount(booking, expected_cents, amount_cents)
        return EscrowLedger.apply_create(
            booking,
            None,
            price_cents,
            notifications,
            external_reason=f"gateway:{provider_name}:{event_id}",
            external_reference=reference,
            provider_name=provider_name,
            payment_method=payment_method,
            completed=True,
        )

    @staticmethod
    def _check_amount(booking: Booking, expected_cents: int, reported_cents: int | None) -> None:
        if reported_cents is not None and reported_cents != expected_cents:
            raise ConsistencyError(
                f"Gateway reported {reported_cents} for booking {booking.pk}, "
                f"expected {expected_cents}",
                details={
                    "booking_id": str(booking.pk),
                    "booking_status": booking.status,
                    "expected_amount_cents": expected_cents,
                    "reported_amount_cents": reported_cents,
                },
            )

    # =========================================================================
    # Outbound Checkout
    # =========================================================================

    @classmethod
    def create_checkout_session(
        cls,
        booking_id: Any,
        actor: User,
        success_url: str,
        cancel_url: str,
    ) -> ServiceResult[CheckoutSessionResult]:
        """
        Start a hosted checkout for the booking's pending payment.

        The gateway is picked from the customer's country. On timeout
        nothing is stored; a retry reuses the same idempotency key.

        Error codes: PERMISSION_DENIED, INVALID_TRANSITION, NOT_FOUND, GATEWAY_*
        """
        try:
            with cls.atomic():
                booking, payment = lock_booking_pair(booking_id)
                if booking.customer_id != actor.pk:
                    raise PermissionDeniedError(
                        "Only the customer can pay for this booking",
                        details={"booking_id": str(booking.pk)},
                    )
                assert_pair_consistent(booking, payment)
                if payment is None or payment.status != EscrowStatus.PENDING:
                    raise InvalidStateTransitionError(
                        f"Booking {booking.pk} has no payment awaiting checkout",
                        details={
                            "model": "EscrowPayment",
                            "pk": str(payment.pk) if payment else None,
                            "current_state": payment.status if payment else None,
                            "action": "checkout",
                        },
                    )

                profile = getattr(actor, "profile", None)
                provider_name = select_payment_provider(
                    profile.country_code if profile else None
                )
                gateway = get_gateway(provider_name)
                session = gateway.create_checkout_session(
                    CheckoutParams(
                        booking_id=str(booking.pk),
                        amount_cents=payment.total_amount_cents,
                        currency=payment.currency,
                        description=booking.service.title,
                        customer_email=actor.email,
                        success_url=success_url,
                        cancel_url=cancel_url,
                        idempotency_key=IdempotencyKeyGenerator.generate(
                            "checkout", payment.pk, attempt=payment.version
                        ),
                        metadata={"payment_id": str(payment.pk)},
                    )
                )

                payment.provider_name = provider_name
                payment.external_reference = session.reference
                payment.set_meta("checkout_url", session.checkout_url)
                save_versioned(payment)
        except BaseApplicationError as exc:
            return cls.fail(exc, "create checkout session")

        cls.get_logger().info(
            "Checkout session created",
            extra={
                "booking_id": str(booking.pk),
                "payment_id": str(payment.pk),
                "provider_name": provider_name,
                "external_reference": session.reference,
            },
        )
        return ServiceResult.success(session)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @classmethod
    def reconcile_pending_payments(
        cls,
        older_than_minutes: int | None = None,
    ) -> ReconciliationSummary:
        """
        Ask the gateway about pending payments that should have settled.

        Payments the gateway reports as succeeded are fed through
        on_payment_intent_succeeded, exactly as a late webhook would be.
        Gateway errors are logged and the payment is left pending for the
        next run.
        """
        minutes = (
            settings.PENDING_PAYMENT_RECONCILE_AFTER_MINUTES
            if older_than_minutes is None
            else older_than_minutes
        )
        cutoff = timezone.now() - timedelta(minutes=minutes)
        candidates = (
            EscrowPayment.objects.filter(status=EscrowStatus.PENDING, created_at__lt=cutoff)
            .exclude(external_reference="")
            .order_by("created_at")
        )

        summary = ReconciliationSummary()
        for payment in candidates.iterator():
            summary.checked += 1
            log_context = {
                "payment_id": str(payment.pk),
                "external_reference": payment.external_reference,
            }
            try:
                status = get_gateway(payment.provider_name).retrieve_payment(
                    payment.external_reference
                )
            except GatewayError:
                cls.get_logger().warning(
                    "Reconciliation lookup failed", extra=log_context, exc_info=True
                )
                summary.failed += 1
                continue

            if not status.succeeded:
                summary.still_pending += 1
                continue

            result = cls.on_payment_intent_succeeded(
                event_id=f"reconcile:{payment.pk}",
                external_reference=status.reference,
                booking_id=payment.booking_id,
                amount_cents=status.amount_cents,
                provider_name=payment.provider_name or PaymentProvider.STRIPE,
                payment_method=status.payment_method,
            )
            if result.success:
                summary.settled += 1
            else:
                summary.failed += 1

        cls.get_logger().info(
            "Pending payment reconciliation finished",
            extra={
                "checked": summary.checked,
                "settled": summary.settled,
                "still_pending": summary.still_pending,
                "failed": summary.failed,
            },
        )
        return summary
