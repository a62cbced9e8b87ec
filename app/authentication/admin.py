"""
Django admin configuration for authentication models.

This module registers User and Profile with the Django admin site.

Related files:
    - models.py: Model definitions
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import Profile, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin configuration for User model.

    Customized for email-based authentication. Marketplace data (account
    type, verification) is managed via ProfileAdmin.
    """

    list_display = (
        "email",
        "email_verified",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = (
        "is_active",
        "is_staff",
        "is_superuser",
        "email_verified",
    )
    search_fields = ("email",)
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            "Status",
            {"fields": ("email_verified", "is_active", "is_staff", "is_superuser")},
        ),
        (
            "Permissions",
            {"fields": ("groups", "user_permissions")},
        ),
        (
            "Important dates",
            {"fields": ("date_joined", "last_login")},
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login")


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    """
    Admin configuration for Profile model.

    Verification state is written by identity-provider webhooks only.
    """

    list_display = (
        "user",
        "display_name",
        "account_type",
        "country_code",
        "kyc_status",
        "kyc_verified_at",
    )
    list_filter = ("account_type", "kyc_status", "country_code")
    search_fields = ("user__email", "display_name", "kyc_session_id")
    ordering = ("-created_at",)

    raw_id_fields = ("user",)
    readonly_fields = (
        "kyc_status",
        "kyc_session_id",
        "kyc_verified_at",
        "created_at",
        "updated_at",
    )
