"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/token/               - Obtain JWT pair (email + password)
    /api/v1/auth/token/refresh/       - Refresh access token
    /api/v1/auth/profile/             - Profile management (GET/PATCH)
    /api/v1/auth/verification/        - Start identity verification (POST)
"""

from django.urls import path

from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.views import ProfileView, StartVerificationView

app_name = "authentication"

urlpatterns = [
    # JWT tokens
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    # Profile management
    path("profile/", ProfileView.as_view(), name="profile"),
    # Identity verification
    path("verification/", StartVerificationView.as_view(), name="verification"),
]
