"""
URL configuration for the payments app.

Routes:
    - POST /bookings/{id}/checkout/ - Create checkout session
    - GET /disputes/ - List disputes
    - POST /disputes/{id}/resolve/ - Resolve a dispute (staff)
    - POST /webhooks/payment/ - Gateway webhook endpoint (all providers)

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import CreateCheckoutSessionView, DisputeListView, ResolveDisputeView
from payments.webhooks.views import payment_webhook

app_name = "payments"

urlpatterns = [
    path(
        "bookings/<uuid:booking_id>/checkout/",
        CreateCheckoutSessionView.as_view(),
        name="checkout",
    ),
    path("disputes/", DisputeListView.as_view(), name="dispute-list"),
    path(
        "disputes/<uuid:dispute_id>/resolve/",
        ResolveDisputeView.as_view(),
        name="dispute-resolve",
    ),
    # Webhook endpoint
    path("webhooks/payment/", payment_webhook, name="payment_webhook"),
]
