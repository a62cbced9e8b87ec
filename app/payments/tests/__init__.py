"""
Tests for payments app.

This package contains test modules for:
- test_fees.py, test_state_transitions.py: Fee arithmetic and state machines
- test_escrow_ledger.py, test_settlement.py, test_dispute_resolver.py: Services
- test_webhooks.py, test_handlers.py, test_tasks.py: Webhook intake and processing
- test_views.py: API endpoint tests

Usage:
    pytest payments/tests/
    pytest payments/tests/test_escrow_ledger.py
"""
