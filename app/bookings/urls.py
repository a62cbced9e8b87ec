"""
URL configuration for bookings API.

Routes:
    /services/                      - Service catalog (GET, POST)
    /services/{id}/                 - Service detail (GET)
    /                               - Bookings (GET, POST)
    /{id}/                          - Booking detail (GET)
    /{id}/confirm/                  - Provider confirms (POST)
    /{id}/decline/                  - Provider declines (POST)
    /{id}/cancel/                   - Cancel (POST)
    /{id}/deliver/                  - Provider marks delivered (POST)
    /{id}/confirm-completion/       - Customer confirms completion (POST)
    /{id}/dispute/                  - Customer disputes (POST)
"""

from rest_framework.routers import DefaultRouter

from bookings.views import BookingViewSet, ServiceViewSet

router = DefaultRouter()
router.register(r"services", ServiceViewSet, basename="service")
router.register(r"", BookingViewSet, basename="booking")

app_name = "bookings"
urlpatterns = router.urls
