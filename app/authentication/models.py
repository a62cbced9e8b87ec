"""
Authentication models.

This module defines the account models:
- User: Email-based user model (slim, auth-focused)
- Profile: Marketplace profile (OneToOne with User) holding the account
  type, country and identity-verification (KYC) state

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: VerificationGate and VerificationService
    - signals.py: Auto-create profile on user creation
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        email_verified: Whether the user's email has been verified
        is_active: Whether the user account is active
        is_staff: Admin access; staff users also resolve disputes
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site and resolve disputes.",
    )
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return the profile's display name, falling back to email."""
        try:
            return self.profile.display_name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        return self.email.split("@")[0]


class Profile(BaseModel):
    """
    Marketplace profile for a user.

    A user acting as a provider with a business account must pass
    identity verification before customers can book their services.
    Personal (customer) accounts may still offer services and are
    exempt from the check.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        display_name: Public name shown to counter-parties
        account_type: customer or business
        country_code: ISO 3166-1 alpha-2 country, picks the payment provider
        kyc_status: Identity verification state
        kyc_session_id: Last verification session at the identity provider
        kyc_verified_at: When verification succeeded

    Note:
        Profile is automatically created via signals when a User is created.
    """

    class AccountType(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        BUSINESS = "business", "Business"

    class KycStatus(models.TextChoices):
        NOT_STARTED = "not_started", "Not Started"
        PENDING = "pending", "Pending"
        VERIFIED = "verified", "Verified"
        REQUIRES_INPUT = "requires_input", "Requires Input"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )
    display_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Public display name",
    )

    # =========================================================================
    # Marketplace Fields
    # =========================================================================
    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        default=AccountType.CUSTOMER,
        db_index=True,
        help_text="Personal customer account or business provider account",
    )
    country_code = models.CharField(
        max_length=2,
        blank=True,
        help_text="ISO 3166-1 alpha-2 country code (e.g., 'NG', 'US')",
    )

    # =========================================================================
    # Identity Verification (KYC)
    # =========================================================================
    kyc_status = models.CharField(
        max_length=20,
        choices=KycStatus.choices,
        default=KycStatus.NOT_STARTED,
        db_index=True,
        help_text="Identity verification status",
    )
    kyc_session_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Identity provider verification session ID",
    )
    kyc_verified_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When identity verification succeeded",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return self.display_name or str(self.user)

    @property
    def is_business(self) -> bool:
        return self.account_type == self.AccountType.BUSINESS

    @property
    def is_kyc_verified(self) -> bool:
        return self.kyc_status == self.KycStatus.VERIFIED
