"""
Project-wide pytest configuration for the Django apps.

This module applies test-only settings overrides and auto-marks tests.
Fixtures shared by several apps (users, a service, API clients) live
here; app-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Apply test-only settings before tests run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # The test client speaks plain HTTP; don't redirect it to HTTPS
    settings.SECURE_SSL_REDIRECT = False

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # No Redis in the test run; DistributedLock tests mock the connection
    settings.CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        }
    }

    # Gateway credentials so adapters can be built; API calls are mocked
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_123"
    settings.PAYSTACK_SECRET_KEY = "sk_test_paystack_123"
    settings.OPERATOR_ALERT_EMAILS = ["ops@example.com"]
    settings.PLATFORM_FEE_BASIS_POINTS = 800

    if settings.DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql":
        _patch_postgresql_flush_for_cascade()


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full booking lifecycle journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_fees.py, test_state_transitions.py, test_adapters.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_settlement.py",
        "test_escrow_ledger.py",
        "test_dispute_resolver.py",
        "test_verification.py",
        "test_optimistic_locking.py",
    ]

    unit_patterns = [
        "test_fees.py",
        "test_models.py",
        "test_serializers.py",
        "test_adapters.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_exceptions.py",
        "test_consistency.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def customer(db):
    """Customer account booking services."""
    from authentication.tests.factories import UserFactory

    return UserFactory(email="customer@example.com")


@pytest.fixture
def provider(db):
    """Personal (customer-type) account offering a service. Exempt from KYC."""
    from authentication.tests.factories import UserFactory

    return UserFactory(email="provider@example.com")


@pytest.fixture
def staff_user(db):
    """Operator allowed to resolve disputes."""
    from authentication.tests.factories import UserFactory

    return UserFactory(email="ops-staff@example.com", is_staff=True)


@pytest.fixture
def service(db, provider):
    """$100.00 service offered by the provider fixture."""
    from bookings.tests.factories import ServiceFactory

    return ServiceFactory(provider=provider, price_cents=10_000, title="Deep clean")


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create JWT-authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, customer):
            client = authenticated_client_factory(customer)
            response = client.get("/api/v1/bookings/")
    """
    from rest_framework.test import APIClient
    from rest_framework_simplejwt.tokens import RefreshToken

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


def _patch_postgresql_flush_for_cascade():
    """
    Patch PostgreSQL flush to always use CASCADE.

    TransactionTestCase resets the database with TRUNCATE, which fails on
    tables referenced by foreign keys unless CASCADE is used.
    """
    from django.db.backends.postgresql import operations

    original_sql_flush = operations.DatabaseOperations.sql_flush

    def sql_flush_with_cascade(
        self, style, tables, *, reset_sequences=False, allow_cascade=False
    ):
        return original_sql_flush(
            self, style, tables, reset_sequences=reset_sequences, allow_cascade=True
        )

    operations.DatabaseOperations.sql_flush = sql_flush_with_cascade
