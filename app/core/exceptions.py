"""
Application-wide exception hierarchy.

Every domain error carries a human-readable message, a machine-readable
error code and an optional details mapping. Services raise these inside
transactions (so the transaction rolls back) and convert them into
ServiceResult failures at their public boundary.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Actor may not perform the operation
    ├── ConflictError - State conflicts (duplicates, stale writes, transitions)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ConflictError

    raise ConflictError(
        "Booking already confirmed",
        error_code="INVALID_TRANSITION",
        details={"booking_id": str(booking.id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, current state, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to a dictionary for API responses.

        Example:
            {
                "error": "Payment not found",
                "error_code": "NOT_FOUND",
                "details": {"payment_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Raised when input fails service-layer validation."""

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested record does not exist.

    Use for single-record lookups where existence is expected
    (a booking id from a URL, a payment id from a webhook).
    """

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user may not perform an operation.

    Authentication failures stay with DRF. This covers authorization
    inside services, e.g. a customer trying to confirm their own booking.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current state of a record.

    Covers duplicates, optimistic-locking failures and illegal state
    transitions. Maps to HTTP 409 unless a subclass says otherwise.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a call to a third-party service fails.

    Log the original error but don't expose provider internals to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
