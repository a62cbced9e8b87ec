"""
Pytest fixtures for gateway adapter tests.

This module provides mocked Stripe SDK resources, fake Stripe objects and
the patched requests call used by the Paystack adapter.

Sections:
    - Test Data Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Client Fixtures
    - Mock Paystack HTTP Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest

from payments.adapters import CheckoutParams


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def checkout_params():
    """Factory for CheckoutParams with sensible defaults."""

    def _create(**overrides) -> CheckoutParams:
        values = {
            "booking_id": "7f1c2a4e-0000-4000-8000-000000000001",
            "amount_cents": 10_800,
            "currency": "usd",
            "description": "Studio session",
            "customer_email": "customer@example.com",
            "success_url": "https://app.example.com/paid",
            "cancel_url": "https://app.example.com/cancelled",
            "idempotency_key": "checkout:abc:1:deadbeef",
        }
        values.update(overrides)
        return CheckoutParams(**values)

    return _create


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with attribute access."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)


@pytest.fixture
def stripe_object():
    """Build a MockStripeObject from keyword arguments."""

    def _create(**fields) -> MockStripeObject:
        return MockStripeObject(fields)

    return _create


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient so no HTTP client is configured."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_checkout_session(mock_stripe_http_client):
    """Mock stripe.checkout.Session API."""
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = MockStripeObject(
            {"id": "cs_test_abc", "url": "https://checkout.stripe.com/c/pay/cs_test_abc"}
        )
        yield mock


@pytest.fixture
def mock_payment_intent_api(mock_stripe_http_client):
    """Mock stripe.PaymentIntent API."""
    with patch("stripe.PaymentIntent") as mock:
        mock.retrieve.return_value = MockStripeObject(
            {
                "id": "pi_test_abc",
                "status": "succeeded",
                "amount": 10_800,
                "amount_received": 10_800,
                "payment_method_types": ["card"],
            }
        )
        yield mock


@pytest.fixture
def mock_refund_api(mock_stripe_http_client):
    """Mock stripe.Refund API."""
    with patch("stripe.Refund") as mock:
        mock.create.return_value = MockStripeObject(
            {"id": "re_test_abc", "status": "succeeded", "amount": 10_800}
        )
        yield mock


# =============================================================================
# Mock Paystack HTTP Fixtures
# =============================================================================


@pytest.fixture
def paystack_http(mocker):
    """
    Patch requests.request used by the Paystack adapter.

    Usage:
        paystack_http.return_value = FakeResponse(200, {"status": True, "data": {}})
    """
    return mocker.patch("payments.adapters.paystack_adapter.requests.request")
