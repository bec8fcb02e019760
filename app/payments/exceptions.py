"""
Payment-specific exceptions.

Exception Hierarchy:
    InvalidSignature (PermissionDeniedError) - webhook authenticity check failed
    SecurityCodeDenied (PermissionDeniedError) - wrong withdrawal security code
    SecurityGateLocked (RateLimitError) - too many wrong codes, retry later
    SecurityCodeNotConfigured (NotFoundError) - restaurant has no code yet
    EmptySelection (ValidationError) - withdrawal with no orders
    AlreadyWithdrawn (ConflictError) - an order was settled by another batch
    StaleRecordError (ConflictError) - re-exported from core.exceptions
    ProviderError (ExternalServiceError) - base for payment provider errors
    ├── ProviderRequestError - request rejected by the provider (permanent)
    ├── ProviderAuthenticationError - bad API key (permanent)
    ├── ProviderRateLimitError - rate limited (transient, retry)
    ├── ProviderUnavailableError - 5xx or connection error (transient, retry)
    └── ProviderTimeoutError - request timed out (transient, retry)

Usage:
    from payments.exceptions import AlreadyWithdrawn, ProviderError

    try:
        NkwaPayAdapter.collect(amount, phone, reference)
    except ProviderError as e:
        if e.is_retryable:
            raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
        raise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    StaleRecordError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


__all__ = [
    "AlreadyWithdrawn",
    "EmptySelection",
    "InvalidSignature",
    "ProviderAuthenticationError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderRequestError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "SecurityCodeDenied",
    "SecurityCodeNotConfigured",
    "SecurityGateLocked",
    "StaleRecordError",
]


# =============================================================================
# Webhook
# =============================================================================


class InvalidSignature(PermissionDeniedError):
    """
    Raised when a provider notification fails authenticity checks.

    Covers missing headers, undecodable signatures, unusable public keys,
    signature mismatch and timestamps outside the tolerance window.
    """

    default_error_code: str = "INVALID_SIGNATURE"


# =============================================================================
# Security Gate
# =============================================================================


class SecurityCodeDenied(PermissionDeniedError):
    default_error_code: str = "SECURITY_CODE_DENIED"

    def __init__(self, message: str = "Invalid security code", remaining_attempts: int = 0):
        super().__init__(
            message, details={"remaining_attempts": remaining_attempts}
        )
        self.remaining_attempts = remaining_attempts


class SecurityGateLocked(RateLimitError):
    """Raised while a restaurant's security code is locked out."""

    default_error_code: str = "SECURITY_GATE_LOCKED"


class SecurityCodeNotConfigured(NotFoundError):
    default_error_code: str = "SECURITY_CODE_NOT_CONFIGURED"


# =============================================================================
# Withdrawal
# =============================================================================


class EmptySelection(ValidationError):
    default_error_code: str = "EMPTY_SELECTION"


class AlreadyWithdrawn(ConflictError):
    """
    Raised when an order in the selection is no longer withdrawable.

    Either another batch settled it first, or it stopped being eligible
    (refunded, amount changed). The whole batch is rolled back.
    """

    default_error_code: str = "ALREADY_WITHDRAWN"


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(ExternalServiceError):
    """
    Base exception for payment provider errors.

    Attributes:
        status_code: HTTP status returned by the provider, if any
        is_retryable: Whether the call can be retried with backoff
    """

    default_error_code: str = "PROVIDER_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["provider_status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class ProviderRequestError(ProviderError):
    default_error_code: str = "PROVIDER_REQUEST_REJECTED"
    is_retryable: bool = False


class ProviderAuthenticationError(ProviderError):
    default_error_code: str = "PROVIDER_AUTHENTICATION_FAILED"
    is_retryable: bool = False


class ProviderRateLimitError(ProviderError):
    default_error_code: str = "PROVIDER_RATE_LIMITED"
    is_retryable: bool = True


class ProviderUnavailableError(ProviderError):
    default_error_code: str = "PROVIDER_UNAVAILABLE"
    is_retryable: bool = True


class ProviderTimeoutError(ProviderError):
    """
    The provider did not answer in time.

    The request may or may not have been applied; callers re-check with
    ``NkwaPayAdapter.get_payment`` before creating a new payment.
    """

    default_error_code: str = "PROVIDER_TIMEOUT"
    is_retryable: bool = True
