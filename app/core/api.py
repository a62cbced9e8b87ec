"""
Helpers for turning service results into DRF responses.

Views branch on ServiceResult.error_code to pick an HTTP status. Rather
than repeating the same if/elif ladder in every view, error codes are
registered once here.

Usage:
    result = BookingService.confirm(booking_id, request.user)
    if not result.success:
        return error_response(result)
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from core.services import ServiceResult

ERROR_STATUS_CODES: dict[str, int] = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "PAYMENT_REQUIRED": status.HTTP_402_PAYMENT_REQUIRED,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    "PROVIDER_NOT_VERIFIED": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "ACTIVE_BOOKING_EXISTS": status.HTTP_409_CONFLICT,
    "DUPLICATE_PAYMENT": status.HTTP_409_CONFLICT,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "STALE_RECORD": status.HTTP_409_CONFLICT,
    "LOCK_ACQUISITION_FAILED": status.HTTP_409_CONFLICT,
    "CONSISTENCY_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_REQUEST_REJECTED": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
    "GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_RATE_LIMITED": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for_error(error_code: str | None) -> int:
    """Return the HTTP status for an error code (400 when unknown)."""
    return ERROR_STATUS_CODES.get(error_code or "", status.HTTP_400_BAD_REQUEST)


def error_response(result: ServiceResult) -> Response:
    """Build a DRF Response from a failed ServiceResult."""
    return Response(result.to_response(), status=status_for_error(result.error_code))
