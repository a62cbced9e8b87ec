"""
Result types returned by BookingService.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bookings.models import Booking
    from payments.models import Dispute, EscrowPayment


@dataclass
class BookingWithPayment:
    """
    A booking together with its escrow payment, as written by one operation.

    Attributes:
        booking: Booking after the operation
        payment: Latest EscrowPayment of the booking (None if it has none)
        dispute: Dispute opened by the operation, if any
    """

    booking: Booking
    payment: EscrowPayment | None
    dispute: Dispute | None = None
