"""
Serializers for authentication models.

This module provides DRF serializers for:
- Profile model (read and update operations)
- Identity verification session start

Related files:
    - models.py: User and Profile models
    - views.py: Views that use these serializers
    - services.py: VerificationService

Security:
    - Verification fields are read-only; only identity-provider webhooks
      change them
"""

from rest_framework import serializers

from authentication.models import Profile


class ProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for Profile model (read operations).
    """

    user_id = serializers.IntegerField(source="user.id", read_only=True)
    user_email = serializers.EmailField(source="user.email", read_only=True)
    is_bookable = serializers.SerializerMethodField()

    class Meta:
        model = Profile
        fields = [
            "user_id",
            "user_email",
            "display_name",
            "account_type",
            "country_code",
            "kyc_status",
            "kyc_verified_at",
            "is_bookable",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_is_bookable(self, obj: Profile) -> bool:
        """Whether customers can book this user's services."""
        return not obj.is_business or obj.is_kyc_verified


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Serializer for updating profile information.

    A business account cannot switch back to a customer account, since
    customer accounts skip identity verification.
    """

    class Meta:
        model = Profile
        fields = [
            "display_name",
            "account_type",
            "country_code",
        ]

    def validate_country_code(self, value: str) -> str:
        value = value.strip().upper()
        if value and (len(value) != 2 or not value.isalpha()):
            raise serializers.ValidationError(
                "Use an ISO 3166-1 alpha-2 country code (e.g., 'NG')."
            )
        return value

    def validate_account_type(self, value: str) -> str:
        if (
            self.instance is not None
            and self.instance.is_business
            and value != Profile.AccountType.BUSINESS
        ):
            raise serializers.ValidationError(
                "Business accounts cannot be changed back to customer accounts."
            )
        return value


class StartVerificationSerializer(serializers.Serializer):
    """
    Request serializer for starting identity verification.

    Fields:
        return_url: Where the identity provider sends the user afterwards
    """

    return_url = serializers.URLField()


class VerificationSessionSerializer(serializers.Serializer):
    """Response serializer for a started verification session."""

    id = serializers.CharField()
    status = serializers.CharField()
    url = serializers.URLField(allow_null=True)
    client_secret = serializers.CharField(allow_null=True)
