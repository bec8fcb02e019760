"""
Constants for the payments app.

Environment-tunable values (fee rate, lockout, provider credentials) live in
settings; these are fixed by the provider or the data model.
"""

from typing import Final


class PROVIDER_CONFIG:
    """Nkwa Pay identifiers."""

    NAME: Final[str] = "Nkwa Pay"
    CURRENCY: Final[str] = "XAF"
    SIGNATURE_HEADER: Final[str] = "X-Signature"
    TIMESTAMP_HEADER: Final[str] = "X-Timestamp"


class WEBHOOK_CONFIG:
    # Processed events older than this are purged by cleanup_webhook_events
    RETENTION_DAYS: Final[int] = 90
    CLEANUP_BATCH_SIZE: Final[int] = 1000
