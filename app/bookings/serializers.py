"""
Serializers for bookings API.

Serializers:
    ServiceSerializer: Catalog entry (providers create, everyone reads)
    BookingSerializer: Read-only booking details
    BookingRequestSerializer: Validate a new booking request
    BookingActionSerializer: Optional reason and expected_version
    ConfirmCompletionSerializer: Optional feedback and expected_version
    DisputeRequestSerializer: Reason, description and evidence for a dispute
    BookingWithPaymentSerializer: {"booking", "payment", "dispute"} response

expected_version is optional on every action. When given, the action
fails with STALE_RECORD if the booking has moved on since the client
read it.
"""

from __future__ import annotations

from django.conf import settings

from rest_framework import serializers

from bookings.models import Booking, Service
from payments.serializers import DisputeSerializer, EscrowPaymentSerializer


class ServiceSerializer(serializers.ModelSerializer):
    """Serializer for the service catalog. provider is always the caller."""

    provider = serializers.PrimaryKeyRelatedField(read_only=True)
    currency = serializers.CharField(max_length=3, required=False)

    class Meta:
        model = Service
        fields = [
            "id",
            "provider",
            "title",
            "description",
            "price_cents",
            "currency",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "provider", "created_at"]

    def validate_price_cents(self, value: int) -> int:
        if value <= 0:
            raise serializers.ValidationError("Price must be positive.")
        return value

    def validate_currency(self, value: str) -> str:
        return value.lower()

    def create(self, validated_data):
        validated_data.setdefault("currency", settings.DEFAULT_CURRENCY.lower())
        return super().create(validated_data)


class BookingSerializer(serializers.ModelSerializer):
    """Read-only serializer for Booking."""

    service_title = serializers.CharField(source="service.title", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "service",
            "service_title",
            "customer",
            "provider",
            "status",
            "payment_status",
            "notes",
            "cancellation_reason",
            "completion_feedback",
            "confirmed_at",
            "delivered_at",
            "completed_at",
            "cancelled_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingRequestSerializer(serializers.Serializer):
    """
    Request serializer for booking a service.

    Fields:
        service_id: Service to book
        notes: Optional schedule or location details
    """

    service_id = serializers.UUIDField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BookingActionSerializer(serializers.Serializer):
    """Request serializer for confirm, decline, cancel and deliver."""

    reason = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, min_value=1)


class ConfirmCompletionSerializer(serializers.Serializer):
    feedback = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, min_value=1)


class DisputeRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    evidence_url = serializers.URLField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, min_value=1)


class BookingWithPaymentSerializer(serializers.Serializer):
    """
    Response for every booking operation.

    payment is null for a booking without an escrow payment; dispute is
    set only by the dispute action.
    """

    booking = BookingSerializer()
    payment = EscrowPaymentSerializer(allow_null=True)
    dispute = DisputeSerializer(allow_null=True, required=False)
