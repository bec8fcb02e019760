"""
Tests for payments app.

This package contains test modules for:
- test_security_gate.py: Code verification, lockout and rotation
- test_withdrawal_service.py: Eligibility, settlement and reporting
- test_collection_service.py: Collection requests against a mocked adapter
- test_tasks.py: Webhook reprocessing and cleanup tasks
- test_views.py: API endpoint tests

Webhook and adapter tests live beside their packages.

Usage:
    pytest payments/tests/
    pytest payments/tests/test_withdrawal_service.py
"""
