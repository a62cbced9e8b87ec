"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair
        token/refresh/             - Refresh access token
        profile/                   - Account type and country
        verification/              - Start identity verification
    /api/v1/bookings/              - Booking endpoints
        services/                  - Service catalog
        {id}/confirm/ ...          - Booking lifecycle actions
    /api/v1/payments/              - Payment endpoints
        bookings/{id}/checkout/    - Start gateway checkout
        disputes/                  - Dispute list
        disputes/{id}/resolve/     - Resolve dispute (staff)
        webhooks/payment/          - Gateway webhook endpoint (POST)
    /api/v1/notifications/         - Notification inbox

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication
    path("auth/", include("authentication.urls")),
    # Bookings
    path("bookings/", include("bookings.urls")),
    # Payments
    path("payments/", include("payments.urls")),
    # Notifications
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Bookings Admin"
admin.site.site_title = "Bookings Admin Portal"
admin.site.index_title = "Bookings, escrow payments and disputes"
