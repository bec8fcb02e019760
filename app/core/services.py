"""
Base service layer patterns for business logic encapsulation.

This module provides:
- ServiceResult: Result wrapper for operations whose failure is an expected
  outcome (an orphaned webhook, a provider declining a collection)
- BaseService: Base class with logging and transaction helpers

Pattern Comparison:
    - ServiceResult: expected outcomes the caller branches on
    - Exceptions (core.exceptions): rule violations that abort the operation,
      rendered by the API layer

Usage:
    from core.services import BaseService, ServiceResult

    class CollectionService(BaseService):
        @classmethod
        def collect(cls, order) -> ServiceResult[dict]:
            try:
                response = adapter.collect(...)
            except ProviderError as e:
                return cls.handle_exception(e, "collect")
            return ServiceResult.success(response)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Example:
            return ServiceResult.success(order)
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Example:
            return ServiceResult.failure(
                "No order matches reference ORD-1-1",
                error_code="ORPHANED_EVENT",
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error code; anything else falls back
        to the exception class name.
        """
        if isinstance(exc, BaseApplicationError):
            return cls(
                success=False,
                error=exc.message,
                error_code=error_code or exc.error_code,
            )
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """Convert to API response format."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - Logging setup per service
    - Database transaction management
    - Exception-to-result conversion with logging

    Design Notes:
        - Use @classmethod (no instance state)
        - Use ServiceResult for expected outcomes
        - Raise core.exceptions errors for rule violations
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class for easy filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around transaction.atomic() that makes transaction
        boundaries explicit in service code. Nested use creates savepoints.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log an exception and convert it to a failed ServiceResult.

        Example:
            try:
                adapter.collect(amount=amount, phone_number=phone, reference=ref)
            except ProviderError as e:
                return cls.handle_exception(e, "collect payment")
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(
            log_level, message, exc_info=log_level >= logging.ERROR
        )
        return ServiceResult.from_exception(exc)
