"""
Payment and escrow exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── DuplicatePaymentError - A live payment already exists for the booking
    ├── PaymentRequiredError - Funds are not yet held in escrow
    ├── ConsistencyError - Booking and payment states disagree
    ├── WebhookSignatureError - Inbound event failed verification
    └── GatewayError - Base for payment/identity provider failures
        ├── GatewayRequestError - Provider rejected the request (permanent)
        ├── GatewayRateLimitError - Rate limited (transient, retry)
        ├── GatewayUnavailableError - Provider unreachable or 5xx (transient, retry)
        └── GatewayTimeoutError - Request timed out (transient, retry)

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import InvalidStateTransitionError

    raise InvalidStateTransitionError(
        "Cannot release payment from 'pending' state",
        details={"current_state": "pending", "action": "release"},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Errors
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for escrow and payment errors."""

    default_error_code: str = "PAYMENT_ERROR"


class DuplicatePaymentError(PaymentError):
    """
    Raised when a booking already has a non-terminal payment.

    Only one pending/completed/disputed payment may exist per booking.
    Also raised when a gateway reports a second, different settlement for
    a booking whose payment is already settled.
    """

    default_error_code: str = "DUPLICATE_PAYMENT"


class PaymentRequiredError(PaymentError):
    """
    Raised when an operation needs funds held in escrow but the payment
    has not been captured yet (customer confirms completion before paying).
    """

    default_error_code: str = "PAYMENT_REQUIRED"


class ConsistencyError(PaymentError):
    """
    Raised when a booking status and its payment status form an illegal pair.

    This is a programming or data error. The operation aborts, the
    transaction rolls back and operators are alerted. Never resolve it by
    guessing which side is right.

    Attributes:
        details: booking_id, booking_status, payment_id, payment_status
    """

    default_error_code: str = "CONSISTENCY_ERROR"


class WebhookSignatureError(PaymentError):
    """Raised when an inbound webhook cannot be authenticated."""

    default_error_code: str = "INVALID_SIGNATURE"


# =============================================================================
# Gateway Errors
# =============================================================================


class GatewayError(PaymentError):
    """
    Base exception for failures talking to an external provider.

    Local state is never advanced when a gateway call fails. Callers retry
    with the same idempotency key when is_retryable is True.

    Attributes:
        gateway: Provider name ("stripe", "paystack")
        gateway_code: Provider's own error code, if any
        is_retryable: Whether the call can be retried safely
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway:
            details["gateway"] = gateway
        if gateway_code:
            details["gateway_code"] = gateway_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway = gateway
        self.gateway_code = gateway_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class GatewayRequestError(GatewayError):
    """The provider rejected the request (bad parameters, auth, card declined)."""

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry)
# -----------------------------------------------------------------------------


class GatewayRateLimitError(GatewayError):
    """The provider throttled the request."""

    default_error_code: str = "GATEWAY_RATE_LIMITED"
    is_retryable: bool = True


class GatewayUnavailableError(GatewayError):
    """The provider returned a server error or could not be reached."""

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    The provider did not answer within the configured timeout.

    The outcome at the provider is unknown. Local state stays pending and
    the next attempt reuses the same idempotency key, so the provider
    either replays its stored result or performs the call once.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Errors
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The row's version changed between read and conditional update.
    The losing writer aborts; its transaction rolls back.

    Attributes:
        details: Contains model, pk, expected_version and current_version
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """Raised when a distributed lock cannot be acquired within its timeout."""

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a lifecycle move is not reachable from the current state.

    Always raised before any mutation. Neighbouring states are never
    substituted for the requested one.

    Attributes:
        details: Contains current_state and the attempted action
    """

    default_error_code: str = "INVALID_TRANSITION"
