"""
Views for bookings API.

ViewSets:
    ServiceViewSet: Service catalog (list, retrieve, create)
    BookingViewSet: Bookings and their lifecycle actions

Endpoints:
    Services:
        GET  /api/v1/bookings/services/         - List bookable services
        POST /api/v1/bookings/services/         - List a new service (provider = caller)
        GET  /api/v1/bookings/services/{id}/    - Service detail

    Bookings:
        GET  /api/v1/bookings/                          - Caller's bookings
        POST /api/v1/bookings/                          - Request a booking
        GET  /api/v1/bookings/{id}/                     - Booking with payment
        POST /api/v1/bookings/{id}/confirm/             - Provider confirms
        POST /api/v1/bookings/{id}/decline/             - Provider declines
        POST /api/v1/bookings/{id}/cancel/              - Customer or provider cancels
        POST /api/v1/bookings/{id}/deliver/             - Provider marks delivered
        POST /api/v1/bookings/{id}/confirm-completion/  - Customer releases funds
        POST /api/v1/bookings/{id}/dispute/             - Customer disputes delivery

Every action responds with {"booking": ..., "payment": ..., "dispute": ...}.
Failures map error codes to HTTP statuses through core.api.error_response.
"""

from __future__ import annotations

from django.db.models import Q

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiResponse

from bookings.models import Service
from bookings.serializers import (
    BookingActionSerializer,
    BookingRequestSerializer,
    BookingSerializer,
    BookingWithPaymentSerializer,
    ConfirmCompletionSerializer,
    DisputeRequestSerializer,
    ServiceSerializer,
)
from bookings.services import BookingService
from bookings.types import BookingWithPayment
from core.api import error_response

UUID_PATTERN = "[0-9a-fA-F-]{36}"

ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation error"),
    402: OpenApiResponse(description="Payment has not been completed"),
    403: OpenApiResponse(description="Not allowed for this user"),
    404: OpenApiResponse(description="Booking not found"),
    409: OpenApiResponse(description="Invalid transition or stale version"),
    502: OpenApiResponse(description="Payment gateway rejected the request"),
    503: OpenApiResponse(description="Payment gateway unavailable"),
    504: OpenApiResponse(description="Payment gateway timed out"),
}


def _pair_response(result, success_status: int = status.HTTP_200_OK) -> Response:
    if not result.success:
        return error_response(result)
    return Response(BookingWithPaymentSerializer(result.data).data, status=success_status)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_services",
        summary="List services",
        description="Active services, plus the caller's own inactive ones.",
        tags=["Bookings - Services"],
    ),
    retrieve=extend_schema(
        operation_id="get_service",
        summary="Get service",
        tags=["Bookings - Services"],
    ),
    create=extend_schema(
        operation_id="create_service",
        summary="List a new service",
        description="The caller becomes the service's provider.",
        tags=["Bookings - Services"],
    ),
)
class ServiceViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    serializer_class = ServiceSerializer
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        return Service.objects.filter(
            Q(is_active=True) | Q(provider=self.request.user)
        ).select_related("provider")

    def perform_create(self, serializer):
        serializer.save(provider=self.request.user)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_bookings",
        summary="List bookings",
        description="Bookings where the caller is the customer or the provider.",
        responses={200: BookingSerializer(many=True)},
        tags=["Bookings"],
    ),
)
class BookingViewSet(viewsets.GenericViewSet):
    """
    ViewSet for bookings.

    Permissions:
    - All endpoints require authentication
    - Only the booking's customer and provider can see it
    - Who may trigger which action is enforced by BookingService
    """

    permission_classes = [IsAuthenticated]
    serializer_class = BookingSerializer
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        return BookingService.bookings_for_user(self.request.user)

    def list(self, request):
        page = self.paginate_queryset(self.get_queryset())
        if page is not None:
            return self.get_paginated_response(BookingSerializer(page, many=True).data)
        return Response(BookingSerializer(self.get_queryset(), many=True).data)

    @extend_schema(
        operation_id="get_booking",
        summary="Get booking",
        responses={200: BookingWithPaymentSerializer, 404: OpenApiResponse(description="Not found")},
        tags=["Bookings"],
    )
    def retrieve(self, request, pk=None):
        booking = self.get_object()
        payment = max(booking.payments.all(), key=lambda p: p.created_at, default=None)
        data = BookingWithPaymentSerializer(BookingWithPayment(booking=booking, payment=payment)).data
        return Response(data)

    @extend_schema(
        operation_id="request_booking",
        summary="Request a booking",
        description=(
            "Creates a pending booking and its pending escrow payment. "
            "Business providers must have passed identity verification."
        ),
        request=BookingRequestSerializer,
        responses={201: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings"],
    )
    def create(self, request):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = BookingService.request_booking(
            request.user,
            serializer.validated_data["service_id"],
            notes=serializer.validated_data["notes"],
        )
        return _pair_response(result, status.HTTP_201_CREATED)

    # =========================================================================
    # Provider Actions
    # =========================================================================

    @extend_schema(
        operation_id="confirm_booking",
        summary="Confirm booking",
        request=BookingActionSerializer,
        responses={200: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings - Actions"],
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        data = self._validated(BookingActionSerializer, request)
        return _pair_response(
            BookingService.confirm(pk, request.user, expected_version=data.get("expected_version"))
        )

    @extend_schema(
        operation_id="decline_booking",
        summary="Decline booking",
        description="Provider turns the booking down. The payment is refunded.",
        request=BookingActionSerializer,
        responses={200: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings - Actions"],
    )
    @action(detail=True, methods=["post"])
    def decline(self, request, pk=None):
        data = self._validated(BookingActionSerializer, request)
        return _pair_response(
            BookingService.decline(
                pk,
                request.user,
                reason=data["reason"],
                expected_version=data.get("expected_version"),
            )
        )

    @extend_schema(
        operation_id="deliver_booking",
        summary="Mark service delivered",
        description="No money moves until the customer confirms completion.",
        request=BookingActionSerializer,
        responses={200: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings - Actions"],
    )
    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        data = self._validated(BookingActionSerializer, request)
        return _pair_response(
            BookingService.mark_service_delivered(
                pk, request.user, expected_version=data.get("expected_version")
            )
        )

    # =========================================================================
    # Customer Actions
    # =========================================================================

    @extend_schema(
        operation_id="cancel_booking",
        summary="Cancel booking",
        description=(
            "Customers can cancel pending bookings; providers can cancel "
            "pending or confirmed ones. Any payment is refunded."
        ),
        request=BookingActionSerializer,
        responses={200: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings - Actions"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        data = self._validated(BookingActionSerializer, request)
        booking = self.get_object()
        method = (
            BookingService.cancel_by_provider
            if booking.provider_id == request.user.pk
            else BookingService.cancel_by_customer
        )
        return _pair_response(
            method(
                booking.pk,
                request.user,
                reason=data["reason"],
                expected_version=data.get("expected_version"),
            )
        )

    @extend_schema(
        operation_id="confirm_booking_completion",
        summary="Confirm completion",
        description="Releases the held funds to the provider.",
        request=ConfirmCompletionSerializer,
        responses={200: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings - Actions"],
    )
    @action(detail=True, methods=["post"], url_path="confirm-completion")
    def confirm_completion(self, request, pk=None):
        data = self._validated(ConfirmCompletionSerializer, request)
        return _pair_response(
            BookingService.confirm_completion(
                pk,
                request.user,
                feedback=data["feedback"],
                expected_version=data.get("expected_version"),
            )
        )

    @extend_schema(
        operation_id="dispute_booking",
        summary="Dispute booking",
        description="Freezes the held funds until an operator resolves the dispute.",
        request=DisputeRequestSerializer,
        responses={200: BookingWithPaymentSerializer, **ERROR_RESPONSES},
        tags=["Bookings - Actions"],
    )
    @action(detail=True, methods=["post"])
    def dispute(self, request, pk=None):
        data = self._validated(DisputeRequestSerializer, request)
        return _pair_response(
            BookingService.dispute(
                pk,
                request.user,
                reason=data["reason"],
                description=data["description"],
                evidence_url=data["evidence_url"],
                expected_version=data.get("expected_version"),
            )
        )

    @staticmethod
    def _validated(serializer_class, request) -> dict:
        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data
