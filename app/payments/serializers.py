"""
Serializers for payments API.

Serializers:
    EscrowPaymentSerializer: Read-only escrow payment details
    DisputeSerializer: Read-only dispute details
    CheckoutRequestSerializer: Validate checkout session creation
    CheckoutResponseSerializer: Checkout session response
    ResolveDisputeSerializer: Validate an operator's dispute resolution

Usage:
    from payments.serializers import EscrowPaymentSerializer

    serializer = EscrowPaymentSerializer(payment)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Dispute, EscrowPayment
from payments.state_machines import DisputeResolution


class EscrowPaymentSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for EscrowPayment.

    Amounts are integer minor units. The checkout URL is exposed from
    metadata while the payment is pending.
    """

    checkout_url = serializers.SerializerMethodField()

    class Meta:
        model = EscrowPayment
        fields = [
            "id",
            "booking",
            "amount_cents",
            "platform_fee_cents",
            "total_amount_cents",
            "currency",
            "status",
            "provider_name",
            "payment_method",
            "external_reference",
            "checkout_url",
            "refund_reason",
            "completed_at",
            "released_at",
            "refunded_at",
            "disputed_at",
            "release_date",
            "version",
            "created_at",
        ]
        read_only_fields = fields

    def get_checkout_url(self, obj: EscrowPayment) -> str | None:
        return obj.get_meta("checkout_url")


class DisputeSerializer(serializers.ModelSerializer):
    """Read-only serializer for Dispute."""

    class Meta:
        model = Dispute
        fields = [
            "id",
            "booking",
            "payment",
            "created_by",
            "reason",
            "description",
            "evidence_url",
            "status",
            "resolution",
            "resolution_note",
            "resolved_by",
            "resolved_at",
            "created_at",
        ]
        read_only_fields = fields


class CheckoutRequestSerializer(serializers.Serializer):
    """
    Request serializer for creating a checkout session.

    Fields:
        success_url: Redirect after successful payment
        cancel_url: Redirect if the customer abandons checkout
    """

    success_url = serializers.URLField()
    cancel_url = serializers.URLField()


class CheckoutResponseSerializer(serializers.Serializer):
    """Response serializer for checkout session creation."""

    provider = serializers.CharField()
    reference = serializers.CharField()
    checkout_url = serializers.URLField()


class ResolveDisputeSerializer(serializers.Serializer):
    """
    Request serializer for resolving a dispute.

    Fields:
        outcome: release (pay the provider) or refund (repay the customer)
        note: Optional note stored on the dispute
    """

    outcome = serializers.ChoiceField(choices=DisputeResolution.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")
