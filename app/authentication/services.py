"""
Identity verification services.

This module provides:
- VerificationGate: The boolean KYC precondition consulted when a
  customer requests a booking
- VerificationService: Starts identity verification sessions and records
  their outcome from identity-provider webhooks

Related files:
    - models.py: Profile.account_type, Profile.kyc_status
    - payments/adapters/stripe_adapter.py: Stripe Identity sessions
    - payments/webhooks/handlers.py: verification.* event handlers

Rules:
    - Customer (personal) accounts are exempt from verification
    - Business accounts can be booked only once kyc_status is verified
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.utils import timezone

from authentication.models import Profile
from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult
from notifications.models import NotificationType
from notifications.services import NotificationEmitter

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User
    from payments.adapters import VerificationSessionResult

logger = logging.getLogger(__name__)


class VerificationGate:
    """
    KYC precondition for bookings.

    Usage:
        from authentication.services import VerificationGate

        if not VerificationGate.is_provider_verified(service.provider_id):
            raise ProviderNotVerifiedError(...)
    """

    @staticmethod
    def is_provider_verified(provider_id: Any) -> bool:
        """
        Whether customers may book this provider.

        Non-business providers pass. Business providers pass only once
        verified. A provider without a profile is treated as unverified.
        """
        profile = (
            Profile.objects.filter(user_id=provider_id)
            .only("account_type", "kyc_status")
            .first()
        )
        if profile is None:
            logger.warning(
                "Provider has no profile; treating as unverified",
                extra={"provider_id": str(provider_id)},
            )
            return False
        if not profile.is_business:
            return True
        return profile.is_kyc_verified


class VerificationService(BaseService):
    """
    Identity verification lifecycle for business accounts.

    Usage:
        result = VerificationService.start_verification(user, return_url)
        if result.success:
            redirect_to(result.data.url)

        # From the webhook handler
        VerificationService.record_result(session_id, verified=True)
    """

    @classmethod
    def start_verification(
        cls,
        user: User,
        return_url: str,
    ) -> ServiceResult[VerificationSessionResult]:
        """
        Create an identity verification session for a business account.

        Error codes: VALIDATION_ERROR (not a business account or already
        verified), GATEWAY_*
        """
        from payments.adapters import IdempotencyKeyGenerator, StripeAdapter

        profile = user.profile
        try:
            if not profile.is_business:
                raise ValidationError(
                    "Only business accounts need identity verification",
                    details={"account_type": profile.account_type},
                )
            if profile.is_kyc_verified:
                raise ValidationError(
                    "Identity is already verified",
                    details={"kyc_status": profile.kyc_status},
                )

            session = StripeAdapter.create_verification_session(
                user_id=str(user.pk),
                return_url=return_url,
                # Same key until a session is stored, so a timed-out call can be retried
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "verification", f"{user.pk}:{profile.kyc_session_id or 'new'}"
                ),
            )
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "start verification")

        profile.kyc_session_id = session.id
        profile.kyc_status = Profile.KycStatus.PENDING
        profile.save(update_fields=["kyc_session_id", "kyc_status", "updated_at"])

        cls.get_logger().info(
            "Verification session started",
            extra={"user_id": user.pk, "session_id": session.id},
        )
        return ServiceResult.success(session)

    @classmethod
    def record_result(cls, session_id: str, verified: bool) -> ServiceResult[Profile]:
        """
        Apply a verification outcome reported by the identity provider.

        Idempotent: replaying the same outcome leaves the profile unchanged
        and sends no second notification.

        Error codes: NOT_FOUND (unknown session)
        """
        profile = Profile.objects.filter(kyc_session_id=session_id).first()
        if profile is None:
            return cls.handle_exception(
                NotFoundError(
                    f"No profile for verification session {session_id}",
                    details={"session_id": session_id},
                ),
                "record verification result",
            )

        new_status = Profile.KycStatus.VERIFIED if verified else Profile.KycStatus.REQUIRES_INPUT
        if profile.kyc_status == new_status:
            return ServiceResult.success(profile)
        if profile.is_kyc_verified and not verified:
            # A stale requires_input event never downgrades a verified profile
            cls.get_logger().info(
                "Ignoring requires_input for verified profile",
                extra={"user_id": profile.user_id, "session_id": session_id},
            )
            return ServiceResult.success(profile)

        profile.kyc_status = new_status
        profile.kyc_verified_at = timezone.now() if verified else None
        profile.save(update_fields=["kyc_status", "kyc_verified_at", "updated_at"])

        cls.get_logger().info(
            "Verification result recorded",
            extra={"user_id": profile.user_id, "kyc_status": new_status},
        )
        NotificationEmitter.emit(
            profile.user_id,
            NotificationType.VERIFICATION_UPDATED,
            (
                "Your identity has been verified. Customers can now book your services."
                if verified
                else "We need more information to verify your identity."
            ),
            {"kyc_status": new_status},
            title="Verification updated",
            idempotency_key=f"verification:{session_id}:{new_status}",
        )
        return ServiceResult.success(profile)
