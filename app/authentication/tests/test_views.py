"""
Tests for authentication API views.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from authentication.models import Profile
from authentication.tests.factories import UserFactory
from payments.adapters import StripeAdapter, VerificationSessionResult
from payments.exceptions import GatewayTimeoutError

pytestmark = pytest.mark.django_db


class TestTokenObtain:
    def test_obtain_pair(self, api_client):
        UserFactory(email="ada@example.com", password="S3cure-pass!")

        response = api_client.post(
            reverse("authentication:token-obtain"),
            {"email": "ada@example.com", "password": "S3cure-pass!"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert {"access", "refresh"} <= set(response.data)

    def test_wrong_password(self, api_client):
        UserFactory(email="ada@example.com")

        response = api_client.post(
            reverse("authentication:token-obtain"),
            {"email": "ada@example.com", "password": "nope"},
            format="json",
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestProfileView:
    def test_get_profile(self, authenticated_client_factory, customer):
        client = authenticated_client_factory(customer)

        response = client.get(reverse("authentication:profile"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["user_email"] == "customer@example.com"
        assert response.data["account_type"] == Profile.AccountType.CUSTOMER
        assert response.data["is_bookable"] is True

    def test_switch_to_business(self, authenticated_client_factory, customer):
        client = authenticated_client_factory(customer)

        response = client.patch(
            reverse("authentication:profile"),
            {"account_type": "business", "country_code": "ng"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["account_type"] == Profile.AccountType.BUSINESS
        assert response.data["country_code"] == "NG"
        assert response.data["is_bookable"] is False

    def test_business_cannot_downgrade(self, authenticated_client_factory):
        user = UserFactory(profile__account_type=Profile.AccountType.BUSINESS)
        client = authenticated_client_factory(user)

        response = client.patch(
            reverse("authentication:profile"), {"account_type": "customer"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Profile.objects.get(user=user).is_business

    def test_invalid_country_code(self, authenticated_client_factory, customer):
        client = authenticated_client_factory(customer)

        response = client.patch(
            reverse("authentication:profile"), {"country_code": "NGA"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_kyc_status_is_read_only(self, authenticated_client_factory, customer):
        client = authenticated_client_factory(customer)

        client.patch(reverse("authentication:profile"), {"kyc_status": "verified"}, format="json")

        assert Profile.objects.get(user=customer).kyc_status == Profile.KycStatus.NOT_STARTED

    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse("authentication:profile"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestStartVerificationView:
    @pytest.fixture
    def business_client(self, authenticated_client_factory):
        user = UserFactory(profile__account_type=Profile.AccountType.BUSINESS)
        return authenticated_client_factory(user)

    def test_starts_session(self, business_client, mocker):
        mocker.patch.object(
            StripeAdapter,
            "create_verification_session",
            return_value=VerificationSessionResult(
                id="vs_test_123",
                status="requires_input",
                url="https://verify.stripe.com/start/vs_test_123",
            ),
        )

        response = business_client.post(
            reverse("authentication:verification"),
            {"return_url": "https://app.example.com/verified"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["id"] == "vs_test_123"
        assert response.data["client_secret"] is None

    def test_customer_account_gets_400(self, authenticated_client_factory, customer):
        client = authenticated_client_factory(customer)

        response = client.post(
            reverse("authentication:verification"),
            {"return_url": "https://app.example.com/verified"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"

    def test_gateway_timeout(self, business_client, mocker):
        mocker.patch.object(
            StripeAdapter,
            "create_verification_session",
            side_effect=GatewayTimeoutError("Request timed out", gateway="stripe"),
        )

        response = business_client.post(
            reverse("authentication:verification"),
            {"return_url": "https://app.example.com/verified"},
            format="json",
        )

        assert response.status_code == status.HTTP_504_GATEWAY_TIMEOUT

    def test_return_url_required(self, business_client):
        response = business_client.post(reverse("authentication:verification"), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
