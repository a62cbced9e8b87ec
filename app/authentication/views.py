"""
Authentication views.

This module provides API views for:
- Profile management (account type, country)
- Identity verification for business accounts

Related files:
    - serializers.py: Request/response serialization
    - services.py: VerificationService
    - urls.py: URL routing

Note:
    Token endpoints come from djangorestframework-simplejwt:
    - Obtain: /api/v1/auth/token/
    - Refresh: /api/v1/auth/token/refresh/
"""

from drf_spectacular.utils import extend_schema, OpenApiResponse
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.models import Profile
from authentication.serializers import (
    ProfileSerializer,
    ProfileUpdateSerializer,
    StartVerificationSerializer,
    VerificationSessionSerializer,
)
from authentication.services import VerificationService
from core.api import error_response


class ProfileView(APIView):
    """
    API view for user profile operations.

    GET: Retrieve current user's profile
    PATCH: Update display name, account type or country

    URL: /api/v1/auth/profile/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current user's profile",
        description="Retrieve profile data including verification status.",
        tags=["Auth - Profile"],
        responses={200: ProfileSerializer},
    )
    def get(self, request):
        profile, _ = Profile.objects.get_or_create(user=request.user)
        return Response(ProfileSerializer(profile).data)

    @extend_schema(
        summary="Partially update profile",
        description=(
            "Switching to a business account requires identity verification "
            "before customers can book your services."
        ),
        tags=["Auth - Profile"],
        request=ProfileUpdateSerializer,
        responses={200: ProfileSerializer},
    )
    def patch(self, request):
        """
        Partially update the current user's profile.

        Request body:
            {
                "display_name": "Ada's Plumbing",   // Optional
                "account_type": "business",         // Optional
                "country_code": "NG"                // Optional
            }
        """
        profile, _ = Profile.objects.get_or_create(user=request.user)
        serializer = ProfileUpdateSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        updated_profile = serializer.save()

        return Response(ProfileSerializer(updated_profile).data)


class StartVerificationView(APIView):
    """
    Start identity verification for a business account.

    POST: Create a verification session at the identity provider

    URL: /api/v1/auth/verification/

    Request body:
        {"return_url": "https://example.com/verified"}

    Returns:
        {"id": "vs_...", "status": "requires_input", "url": "...", "client_secret": "..."}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Start identity verification",
        tags=["Auth - Verification"],
        request=StartVerificationSerializer,
        responses={
            201: VerificationSessionSerializer,
            400: OpenApiResponse(description="Not a business account or already verified"),
            504: OpenApiResponse(description="Identity provider timed out"),
        },
    )
    def post(self, request):
        serializer = StartVerificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = VerificationService.start_verification(
            request.user,
            serializer.validated_data["return_url"],
        )
        if not result.success:
            return error_response(result)

        return Response(
            VerificationSessionSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )
