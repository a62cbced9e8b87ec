"""
Tests for VerificationGate and VerificationService.
"""

import pytest

from authentication.models import Profile
from authentication.services import VerificationGate, VerificationService
from authentication.tests.factories import BusinessUserFactory, UserFactory
from notifications.models import Notification, NotificationType
from payments.adapters import StripeAdapter, VerificationSessionResult
from payments.exceptions import GatewayTimeoutError

pytestmark = pytest.mark.django_db

BUSINESS = Profile.AccountType.BUSINESS


@pytest.fixture
def unverified_business():
    return UserFactory(profile__account_type=BUSINESS)


@pytest.fixture
def mock_identity(mocker):
    return mocker.patch.object(
        StripeAdapter,
        "create_verification_session",
        return_value=VerificationSessionResult(
            id="vs_test_123",
            status="requires_input",
            url="https://verify.stripe.com/start/vs_test_123",
            client_secret="vs_test_123_secret",
        ),
    )


def profile_of(user):
    return Profile.objects.get(user=user)


# =============================================================================
# VerificationGate
# =============================================================================


class TestVerificationGate:
    def test_customer_account_is_exempt(self):
        assert VerificationGate.is_provider_verified(UserFactory().pk)

    def test_verified_business(self):
        assert VerificationGate.is_provider_verified(BusinessUserFactory().pk)

    @pytest.mark.parametrize(
        "kyc_status",
        [
            Profile.KycStatus.NOT_STARTED,
            Profile.KycStatus.PENDING,
            Profile.KycStatus.REQUIRES_INPUT,
        ],
    )
    def test_unverified_business(self, kyc_status):
        user = UserFactory(profile__account_type=BUSINESS, profile__kyc_status=kyc_status)

        assert not VerificationGate.is_provider_verified(user.pk)

    def test_missing_profile_is_unverified(self):
        user = UserFactory()
        Profile.objects.filter(user=user).delete()

        assert not VerificationGate.is_provider_verified(user.pk)


# =============================================================================
# start_verification
# =============================================================================


class TestStartVerification:
    def test_creates_session(self, unverified_business, mock_identity):
        result = VerificationService.start_verification(
            unverified_business, "https://app.example.com/verified"
        )

        assert result.success
        assert result.data.id == "vs_test_123"
        profile = profile_of(unverified_business)
        assert profile.kyc_session_id == "vs_test_123"
        assert profile.kyc_status == Profile.KycStatus.PENDING
        kwargs = mock_identity.call_args.kwargs
        assert kwargs["user_id"] == str(unverified_business.pk)
        assert kwargs["return_url"] == "https://app.example.com/verified"
        assert kwargs["idempotency_key"].startswith("verification:")

    def test_customer_account_rejected(self, mock_identity):
        result = VerificationService.start_verification(
            UserFactory(), "https://app.example.com/verified"
        )

        assert result.error_code == "VALIDATION_ERROR"
        assert result.details == {"account_type": Profile.AccountType.CUSTOMER}
        mock_identity.assert_not_called()

    def test_already_verified(self, mock_identity):
        result = VerificationService.start_verification(
            BusinessUserFactory(), "https://app.example.com/verified"
        )

        assert result.error_code == "VALIDATION_ERROR"
        mock_identity.assert_not_called()

    def test_timeout_stores_nothing(self, unverified_business, mock_identity):
        mock_identity.side_effect = GatewayTimeoutError("Request timed out", gateway="stripe")

        result = VerificationService.start_verification(
            unverified_business, "https://app.example.com/verified"
        )

        assert result.error_code == "GATEWAY_TIMEOUT"
        profile = profile_of(unverified_business)
        assert profile.kyc_session_id == ""
        assert profile.kyc_status == Profile.KycStatus.NOT_STARTED

    def test_retry_after_timeout_reuses_key(self, unverified_business, mock_identity):
        mock_identity.side_effect = [
            GatewayTimeoutError("Request timed out", gateway="stripe"),
            mock_identity.return_value,
        ]

        VerificationService.start_verification(unverified_business, "https://a.example.com/")
        VerificationService.start_verification(unverified_business, "https://a.example.com/")

        first, second = mock_identity.call_args_list
        assert first.kwargs["idempotency_key"] == second.kwargs["idempotency_key"]


# =============================================================================
# record_result
# =============================================================================


class TestRecordResult:
    @pytest.fixture
    def pending_business(self):
        return UserFactory(
            profile__account_type=BUSINESS,
            profile__kyc_status=Profile.KycStatus.PENDING,
            profile__kyc_session_id="vs_test_123",
        )

    def test_verified(self, pending_business):
        result = VerificationService.record_result("vs_test_123", verified=True)

        assert result.success
        profile = profile_of(pending_business)
        assert profile.is_kyc_verified
        assert profile.kyc_verified_at is not None
        assert VerificationGate.is_provider_verified(pending_business.pk)
        assert Notification.objects.filter(
            recipient=pending_business,
            notification_type=NotificationType.VERIFICATION_UPDATED,
        ).count() == 1

    def test_requires_input(self, pending_business):
        VerificationService.record_result("vs_test_123", verified=False)

        profile = profile_of(pending_business)
        assert profile.kyc_status == Profile.KycStatus.REQUIRES_INPUT
        assert profile.kyc_verified_at is None

    def test_replay_is_idempotent(self, pending_business):
        VerificationService.record_result("vs_test_123", verified=True)
        verified_at = profile_of(pending_business).kyc_verified_at

        result = VerificationService.record_result("vs_test_123", verified=True)

        assert result.success
        assert profile_of(pending_business).kyc_verified_at == verified_at
        assert Notification.objects.filter(recipient=pending_business).count() == 1

    def test_late_requires_input_does_not_downgrade(self, pending_business):
        VerificationService.record_result("vs_test_123", verified=True)

        VerificationService.record_result("vs_test_123", verified=False)

        assert profile_of(pending_business).is_kyc_verified

    def test_unknown_session(self):
        result = VerificationService.record_result("vs_unknown", verified=True)

        assert result.error_code == "NOT_FOUND"
        assert result.details == {"session_id": "vs_unknown"}
