"""
Payment provider adapters.
"""

from payments.adapters.nkwa_adapter import (
    NkwaPayAdapter,
    ProviderPaymentResult,
    backoff_delay,
    is_retryable_provider_error,
)

__all__ = [
    "NkwaPayAdapter",
    "ProviderPaymentResult",
    "backoff_delay",
    "is_retryable_provider_error",
]
