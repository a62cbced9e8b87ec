"""
Booking/payment pair consistency.

A booking's status and the status of its latest escrow payment must
always form one of the pairs below. Services check the pair when they
load it and again before they write it. Any other combination raises
ConsistencyError and aborts the operation.

    booking              payment
    -------------------  -----------------------
    pending              pending, none
    confirmed            pending, completed
    pending_completion   pending, completed
    completed            released
    disputed             disputed
    cancelled            refunded, none
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bookings.models import BookingPaymentStatus, BookingStatus
from payments.exceptions import ConsistencyError
from payments.state_machines import EscrowStatus

if TYPE_CHECKING:
    from bookings.models import Booking
    from payments.models import EscrowPayment

LEGAL_STATUS_PAIRS: dict[str, frozenset[str | None]] = {
    BookingStatus.PENDING: frozenset({EscrowStatus.PENDING, None}),
    BookingStatus.CONFIRMED: frozenset({EscrowStatus.PENDING, EscrowStatus.COMPLETED}),
    BookingStatus.PENDING_COMPLETION: frozenset(
        {EscrowStatus.PENDING, EscrowStatus.COMPLETED}
    ),
    BookingStatus.COMPLETED: frozenset({EscrowStatus.RELEASED}),
    BookingStatus.DISPUTED: frozenset({EscrowStatus.DISPUTED}),
    BookingStatus.CANCELLED: frozenset({EscrowStatus.REFUNDED, None}),
}


def is_legal_pair(booking_status: str, payment_status: str | None) -> bool:
    return payment_status in LEGAL_STATUS_PAIRS.get(booking_status, frozenset())


def assert_pair_consistent(booking: Booking, payment: EscrowPayment | None) -> None:
    """
    Raise ConsistencyError unless booking and payment form a legal pair.

    Also checks that the payment belongs to the booking and that the
    booking's mirrored payment_status matches the payment.
    """
    payment_status = payment.status if payment is not None else None
    details = {
        "booking_id": str(booking.pk),
        "booking_status": booking.status,
        "payment_id": str(payment.pk) if payment is not None else None,
        "payment_status": payment_status,
    }

    if payment is not None and payment.booking_id != booking.pk:
        raise ConsistencyError(
            f"Payment {payment.pk} does not belong to booking {booking.pk}",
            details=details,
        )

    if not is_legal_pair(booking.status, payment_status):
        raise ConsistencyError(
            f"Booking {booking.pk} is {booking.status} "
            f"but its payment is {payment_status or 'missing'}",
            details=details,
        )

    expected_mirror = payment_status or BookingPaymentStatus.UNPAID
    if booking.payment_status != expected_mirror:
        raise ConsistencyError(
            f"Booking {booking.pk} mirrors payment status {booking.payment_status} "
            f"but the payment is {expected_mirror}",
            details={**details, "mirrored_status": booking.payment_status},
        )
