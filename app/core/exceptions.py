"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input, rejected before any mutation
    ├── NotFoundError - No matching order, restaurant or setting
    ├── PermissionDeniedError - Authorization and security-boundary failures
    ├── ConflictError - State conflicts (illegal transitions, lost races)
    ├── RateLimitError - Temporary lockouts, carries a retry-after
    └── ExternalServiceError - Payment provider failures

Each class carries the HTTP status used by
core.exception_handler.application_exception_handler when the error escapes
a DRF view.

Usage:
    from core.exceptions import ConflictError

    raise ConflictError(
        "Order already withdrawn",
        error_code="ALREADY_WITHDRAWN",
        details={"order_id": str(order.id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers)
        http_status: Status code used when rendered by the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Order ORD-1709251199999-42 not found",
                "error_code": "ORDER_NOT_FOUND",
                "details": {"order_number": "ORD-1709251199999-42"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails in the service layer.

    DRF serializers cover request shape; this covers business rules such as
    negative totals or an empty withdrawal selection.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource does not exist."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller is not allowed to perform an operation.

    Covers staff-membership checks, rejected webhook signatures and wrong
    withdrawal security codes. Always logged by the raiser.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current resource state.

    Use for:
    - Invalid state transitions
    - Optimistic locking failures
    - Orders already claimed by another withdrawal batch

    The caller is expected to re-read the resource and decide again.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class RateLimitError(BaseApplicationError):
    """
    Raised when an action is temporarily blocked.

    Attributes:
        retry_after: Seconds until the action may be attempted again
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    http_status: int = 429

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        retry_after: int | None = None,
    ):
        self.retry_after = retry_after
        details = dict(details or {})
        if retry_after is not None:
            details.setdefault("retry_after", retry_after)
        super().__init__(message, error_code=error_code, details=details)


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose provider internals
    to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


class StaleRecordError(ConflictError):
    """
    Raised when an optimistic version check fails.

    The record was modified by someone else after the caller read it.
    """

    default_error_code: str = "STALE_RECORD"
