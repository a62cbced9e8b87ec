"""
Authentication application.

This app provides email/password users, the marketplace profile and the
identity verification (KYC) state used to gate bookings.

Key components:
    - User model: Custom email-based user authentication (JWT via simplejwt)
    - Profile model: Account type, country and verification status
    - VerificationGate: Whether a provider may be booked
    - VerificationService: Starts verification sessions and records results

Usage:
    from authentication.models import User, Profile
    from authentication.services import VerificationGate
"""
