"""
Tests for authentication app.

This package contains test modules for:
- test_verification.py: VerificationGate and VerificationService tests
- test_views.py: Token, profile and verification endpoint tests

Usage:
    pytest authentication/tests/
"""
