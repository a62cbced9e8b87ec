"""
DisputeResolver: operator resolution of an open dispute.

A dispute freezes the payment and the booking in 'disputed'. Only staff
can move them on, with one of two outcomes:

    release: payment disputed -> released, booking disputed -> completed
    refund:  payment disputed -> refunded (gateway refund of the total),
             booking disputed -> cancelled

Both parties are notified of the outcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model

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
from payments.exceptions import InvalidStateTransitionError
from payments.locks import ensure_current, lock_payment_pair, save_versioned
from payments.models import Dispute
from payments.services.base import LifecycleService
from payments.services.escrow_ledger import EscrowLedger
from payments.state_machines import DisputeResolution, DisputeStatus

if TYPE_CHECKING:
    from typing import Any


class DisputeResolver(LifecycleService):
    """Applies the terminal ledger action chosen by an operator."""

    @classmethod
    def resolve(
        cls,
        dispute_id: Any,
        outcome: str,
        resolver_id: Any,
        note: str = "",
    ) -> ServiceResult[Dispute]:
        """
        Resolve an open dispute.

        Args:
            dispute_id: Dispute to resolve
            outcome: "release" or "refund"
            resolver_id: Staff user applying the resolution
            note: Optional note stored on the dispute

        Returns:
            ServiceResult with the resolved Dispute. Error codes:
            VALIDATION_ERROR, PERMISSION_DENIED, NOT_FOUND, INVALID_TRANSITION,
            GATEWAY_*
        """
        notifications: list[PendingNotification] = []
        try:
            if outcome not in DisputeResolution.values:
                raise ValidationError(
                    f"Unknown resolution outcome: {outcome}",
                    details={"outcome": outcome, "allowed": list(DisputeResolution.values)},
                )
            resolver = get_user_model().objects.filter(pk=resolver_id).first()
            if resolver is None or not resolver.is_staff:
                raise PermissionDeniedError(
                    "Only operators can resolve disputes",
                    details={"resolver_id": str(resolver_id)},
                )

            with cls.atomic():
                payment_id = (
                    Dispute.objects.filter(pk=dispute_id)
                    .values_list("payment_id", flat=True)
                    .first()
                )
                if payment_id is None:
                    raise NotFoundError(
                        f"Dispute {dispute_id} not found",
                        details={"dispute_id": str(dispute_id)},
                    )
                booking, payment = lock_payment_pair(payment_id)
                dispute = Dispute.objects.select_for_update().get(pk=dispute_id)
                if not dispute.is_open:
                    raise InvalidStateTransitionError(
                        f"Dispute {dispute.pk} is already resolved",
                        details={
                            "model": "Dispute",
                            "pk": str(dispute.pk),
                            "current_state": dispute.status,
                            "action": "resolve",
                        },
                    )

                assert_pair_consistent(booking, payment)
                if outcome == DisputeResolution.RELEASE:
                    cls.apply_transition(payment, "resolve_release")
                    cls.apply_transition(booking, "resolve_complete")
                else:
                    reason = note or f"Dispute resolved in the customer's favour: {dispute.reason}"
                    cls.apply_transition(payment, "resolve_refund", reason)
                    cls.apply_transition(booking, "resolve_cancel", reason)
                booking.payment_status = payment.status
                assert_pair_consistent(booking, payment)

                if outcome == DisputeResolution.REFUND:
                    ensure_current(booking, payment)
                    EscrowLedger.reverse_funds(payment, captured=True, reason=reason)

                save_versioned(booking)
                save_versioned(payment)
                dispute.mark_resolved(outcome, resolver, note)
                dispute.save()

                payload = {
                    "booking_id": str(booking.pk),
                    "payment_id": str(payment.pk),
                    "dispute_id": str(dispute.pk),
                    "resolution": outcome,
                }
                message = (
                    "The dispute was resolved. Funds were released to the provider."
                    if outcome == DisputeResolution.RELEASE
                    else "The dispute was resolved. The payment was refunded to the customer."
                )
                for recipient_id in (booking.customer_id, booking.provider_id):
                    notifications.append(
                        PendingNotification(
                            recipient_id=recipient_id,
                            notification_type=NotificationType.DISPUTE_RESOLVED,
                            title="Dispute resolved",
                            message=message,
                            payload=payload,
                            actor_id=resolver.pk,
                            idempotency_key=f"dispute:{dispute.pk}:resolved:{recipient_id}",
                        )
                    )
        except BaseApplicationError as exc:
            return cls.fail(exc, "resolve dispute")

        cls.get_logger().info(
            "Dispute resolved",
            extra={
                "dispute_id": str(dispute.pk),
                "resolution": outcome,
                "resolver_id": str(resolver_id),
            },
        )
        NotificationEmitter.emit_many(notifications)
        return ServiceResult.success(dispute)

    @classmethod
    def open_disputes(cls):
        """Open disputes, oldest first."""
        return (
            Dispute.objects.filter(status=DisputeStatus.OPEN)
            .select_related("booking", "payment")
            .order_by("created_at")
        )
