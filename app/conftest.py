"""
Pytest configuration shared by every app under app/.

Environment defaults and django.setup() live in the repository-level
conftest.py. This module adjusts settings for speed and auto-marks tests.
"""

import pytest


def pytest_configure():
    """Adjust Django settings for the test run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    _patch_postgresql_flush_for_cascade()


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full order-to-withdrawal journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_serializers.py, test_signature.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_permissions.py",
        "test_webhooks.py",
        "test_handlers.py",
        "test_consumers.py",
        "test_security_gate.py",
        "test_withdrawal_service.py",
        "test_collection_service.py",
        "test_concurrency.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_signature.py",
        "test_nkwa_adapter.py",
        "test_state_transitions.py",
        "test_envelopes.py",
        "test_hub.py",
        "test_exception_handler.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filepath = str(item.fspath)
        filename = filepath.split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


def _patch_postgresql_flush_for_cascade():
    """
    Patch PostgreSQL flush to always use CASCADE.

    This fixes the "cannot truncate a table referenced in a foreign key constraint"
    error that occurs when TransactionTestCase tries to flush the database.
    """
    from django.conf import settings

    if "postgresql" not in settings.DATABASES["default"]["ENGINE"]:
        return

    from django.db.backends.postgresql import operations

    original_sql_flush = operations.DatabaseOperations.sql_flush

    def sql_flush_with_cascade(
        self, style, tables, *, reset_sequences=False, allow_cascade=False
    ):
        # Force CASCADE for PostgreSQL to handle FK constraints
        return original_sql_flush(
            self, style, tables, reset_sequences=reset_sequences, allow_cascade=True
        )

    operations.DatabaseOperations.sql_flush = sql_flush_with_cascade


class EventRecorder:
    """Signal receiver that keeps every (event_type, order, changes) it gets."""

    def __init__(self):
        self.events = []

    def __call__(self, sender, order, event_type, changes=None, **kwargs):
        self.events.append((event_type, order, changes or {}))

    @property
    def types(self):
        return [event_type for event_type, _, _ in self.events]


@pytest.fixture
def event_receiver():
    """
    Recorder connected to ``order_event`` for the duration of the test.

    Combine with ``django_capture_on_commit_callbacks(execute=True)`` since
    events are sent after commit.
    """
    from orders.signals import order_event

    receiver = EventRecorder()
    order_event.connect(receiver, dispatch_uid="tests.event_receiver", weak=False)
    yield receiver
    order_event.disconnect(dispatch_uid="tests.event_receiver")
