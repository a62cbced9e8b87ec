"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Discriminated success/failure wrapper returned by services
- BaseService: Base class with logging, transactions and error conversion

Pattern:
    - Expected business failures (illegal transition, duplicate payment,
      missing verification) are raised as BaseApplicationError subclasses
      inside the service, which rolls back the surrounding transaction,
      and are converted to ServiceResult.failure at the public boundary.
    - Unexpected failures (database unavailable, programming errors)
      propagate as exceptions.

Usage:
    from core.services import BaseService, ServiceResult

    class BookingService(BaseService):
        @classmethod
        def confirm(cls, booking_id, actor) -> ServiceResult[Booking]:
            try:
                with cls.atomic():
                    booking = Booking.objects.select_for_update().get(pk=booking_id)
                    booking.confirm()
                    booking.save()
            except BaseApplicationError as exc:
                return cls.handle_exception(exc, "confirm booking")
            return ServiceResult.success(booking)

    # In a view
    result = BookingService.confirm(booking_id, request.user)
    if result.success:
        return Response(BookingSerializer(result.data).data)
    return Response(result.to_response(), status=409)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Structured context for the failure (ids, current state)

    Usage:
        result = EscrowLedger.release(payment_id)
        if not result:
            logger.warning("Release rejected: %s", result.error_code)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Alias for success()."""
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            details: Structured context for the failure
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code and details; any other
        exception is coded after its class name unless error_code is given.
        """
        if isinstance(exc, BaseApplicationError):
            return cls(
                success=False,
                error=exc.message,
                error_code=error_code or exc.error_code,
                details=exc.details or None,
            )
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def map(self, func) -> ServiceResult:
        """Transform the data if successful, return self unchanged otherwise."""
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Services are stateless: expose @classmethod entry points and keep
    all state in the database.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around transaction.atomic() that makes transaction
        boundaries explicit in service code. Nested use creates a savepoint.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.WARNING,
    ) -> ServiceResult:
        """
        Log an exception and convert it to a failed ServiceResult.

        Args:
            exc: The caught exception
            context: Operation name for the log line
            log_level: Logging level (default WARNING, business failures are expected)
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(
            log_level,
            message,
            exc_info=log_level >= logging.ERROR,
            extra={"error_code": getattr(exc, "error_code", None)},
        )
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any field is None or blank, None otherwise.

        Example:
            validation = cls.validate_required(reason=reason)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
