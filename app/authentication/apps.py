"""
Django app configuration for authentication.

Owns the email-login User, the marketplace Profile and the identity
verification state consulted before a business provider can be booked.
"""

from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Authentication"

    def ready(self):
        # Connects create_user_profile so every User gets a Profile
        from authentication import signals  # noqa: F401
