"""
DRF views for payments app.

This module provides API views for:
- Checkout session creation
- Dispute listing and operator resolution

Related files:
    - services/: SettlementGateway, DisputeResolver
    - serializers.py: Request/response serializers
    - webhooks/views.py: Gateway webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/bookings/{id}/checkout/ - Create checkout session
    GET /api/v1/payments/disputes/ - List disputes (parties see theirs, staff see all)
    POST /api/v1/payments/disputes/{id}/resolve/ - Resolve a dispute (staff)
    POST /api/v1/payments/webhooks/payment/ - Gateway webhook endpoint

Security:
    - All endpoints require authentication except webhook
    - Webhook verifies the provider's signature
"""

from __future__ import annotations

from django.db.models import Q

from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, OpenApiResponse

from core.api import error_response
from payments.models import Dispute
from payments.serializers import (
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    DisputeSerializer,
    ResolveDisputeSerializer,
)
from payments.services import DisputeResolver, SettlementGateway


class CreateCheckoutSessionView(APIView):
    """
    Create a hosted checkout session for a booking's pending payment.

    POST /api/v1/payments/bookings/{id}/checkout/

    Request body:
        {
            "success_url": "https://example.com/success",
            "cancel_url": "https://example.com/cancel"
        }

    Returns:
        {"provider": "stripe", "reference": "cs_...", "checkout_url": "https://..."}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_checkout_session",
        summary="Create checkout session",
        request=CheckoutRequestSerializer,
        responses={
            201: CheckoutResponseSerializer,
            403: OpenApiResponse(description="Not the booking's customer"),
            409: OpenApiResponse(description="No payment awaiting checkout"),
            504: OpenApiResponse(description="Payment gateway timed out"),
        },
        tags=["Payments"],
    )
    def post(self, request, booking_id):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = SettlementGateway.create_checkout_session(
            booking_id,
            request.user,
            success_url=serializer.validated_data["success_url"],
            cancel_url=serializer.validated_data["cancel_url"],
        )
        if not result.success:
            return error_response(result)

        return Response(
            CheckoutResponseSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class DisputeListView(APIView):
    """
    List disputes visible to the caller.

    GET /api/v1/payments/disputes/?status=open

    Staff see every dispute. Other users see disputes on their own bookings.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_disputes",
        summary="List disputes",
        responses={200: DisputeSerializer(many=True)},
        tags=["Payments - Disputes"],
    )
    def get(self, request):
        queryset = Dispute.objects.all()
        if not request.user.is_staff:
            queryset = queryset.filter(Q(customer=request.user) | Q(provider=request.user))

        dispute_status = request.query_params.get("status")
        if dispute_status:
            queryset = queryset.filter(status=dispute_status)

        return Response(DisputeSerializer(queryset, many=True).data)


class ResolveDisputeView(APIView):
    """
    Resolve an open dispute.

    POST /api/v1/payments/disputes/{id}/resolve/

    Request body:
        {"outcome": "release" | "refund", "note": "optional"}
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="resolve_dispute",
        summary="Resolve dispute",
        description=(
            "release pays the held funds to the provider and completes the "
            "booking. refund repays the customer and cancels the booking."
        ),
        request=ResolveDisputeSerializer,
        responses={
            200: DisputeSerializer,
            404: OpenApiResponse(description="Dispute not found"),
            409: OpenApiResponse(description="Dispute already resolved"),
        },
        tags=["Payments - Disputes"],
    )
    def post(self, request, dispute_id):
        serializer = ResolveDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DisputeResolver.resolve(
            dispute_id,
            serializer.validated_data["outcome"],
            request.user.pk,
            note=serializer.validated_data["note"],
        )
        if not result.success:
            return error_response(result)

        return Response(DisputeSerializer(result.data).data)
