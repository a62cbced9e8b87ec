"""
Booking exceptions.

Exception Hierarchy:
    ActiveBookingExistsError - Customer already has an active booking for the
        service (inherits ConflictError, HTTP 409)
    ProviderNotVerifiedError - Business provider has not passed identity
        verification (inherits PermissionDeniedError, HTTP 403)

Payment-side errors a booking operation can surface (INVALID_TRANSITION,
PAYMENT_REQUIRED, DUPLICATE_PAYMENT, GATEWAY_*, CONSISTENCY_ERROR) live in
payments.exceptions.
"""

from core.exceptions import ConflictError, PermissionDeniedError


class ActiveBookingExistsError(ConflictError):
    """
    Raised when a customer requests a service they already have an
    active (pending, confirmed or pending_completion) booking for.

    Attributes:
        details: Contains service_id and the existing booking_id
    """

    default_error_code: str = "ACTIVE_BOOKING_EXISTS"


class ProviderNotVerifiedError(PermissionDeniedError):
    """Raised when the service's business provider is not KYC-verified."""

    default_error_code: str = "PROVIDER_NOT_VERIFIED"
