"""
Nkwa Pay adapter for mobile-money collections and disbursements.

This module wraps the provider's REST API with:
- Timeout configuration on every call
- Error translation to domain exceptions (payments.exceptions)
- Bounded retry with exponential backoff on transient errors
- Structured logging with timing metrics

Usage:
    from payments.adapters import NkwaPayAdapter

    result = NkwaPayAdapter.collect(
        amount=Decimal("1050"),
        phone_number="237650000000",
        reference=order.order_number,
    )
    result.id      # provider payment id, later seen as the webhook event id
    result.status  # "pending" until the customer approves on their phone

Configuration (via settings):
    NKWA_API_BASE_URL: Provider API root
    NKWA_API_KEY: Sent as the X-API-Key header
    NKWA_API_TIMEOUT_SECONDS: Per-request timeout (default: 10)
    NKWA_MAX_RETRIES: Retries after the first attempt on transient errors (default: 2)

Note:
    Amounts are sent as whole XAF units; the CFA franc has no minor unit.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import requests
from django.conf import settings

from payments.exceptions import (
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)


# =============================================================================
# Result Data Classes
# =============================================================================


@dataclass
class ProviderPaymentResult:
    """Result of a collect, disburse or payment lookup call."""

    id: str
    status: str
    amount: Decimal | None
    reference: str
    phone_number: str = ""
    payment_type: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ProviderPaymentResult:
        amount = data.get("amount")
        return cls(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or "pending"),
            amount=Decimal(str(amount)) if amount is not None else None,
            reference=str(data.get("reference") or ""),
            phone_number=str(data.get("phoneNumber") or ""),
            payment_type=str(data.get("paymentType") or ""),
            raw_response=data,
        )


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_provider_error(error: Exception) -> bool:
    """
    Check if a provider error is retryable.

    Use this in Celery tasks to decide whether to retry:

        except Exception as e:
            if is_retryable_provider_error(e):
                raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
            raise
    """
    if isinstance(error, ProviderError):
        return error.is_retryable
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


# =============================================================================
# Nkwa Pay Adapter
# =============================================================================


class NkwaPayAdapter:
    """
    Adapter for Nkwa Pay API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from Celery workers and request threads.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @staticmethod
    def _base_url() -> str:
        return settings.NKWA_API_BASE_URL.rstrip("/")

    @staticmethod
    def _headers() -> dict[str, str]:
        return {
            "X-API-Key": settings.NKWA_API_KEY,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @staticmethod
    def _whole_units(amount: Decimal) -> int:
        return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def collect(
        cls,
        amount: Decimal,
        phone_number: str,
        reference: str,
    ) -> ProviderPaymentResult:
        """
        Request a mobile-money payment from a customer.

        ``reference`` must be the order number so the provider's notification
        can be matched back to the order.

        Raises:
            ProviderRequestError: Rejected parameters (permanent)
            ProviderAuthenticationError: Bad API key (permanent)
            ProviderUnavailableError / ProviderTimeoutError: after retries
        """
        body = {
            "amount": cls._whole_units(amount),
            "phoneNumber": phone_number,
            "reference": reference,
        }
        data = cls._request("POST", "/collect", operation="collect", json=body)
        return ProviderPaymentResult.from_response({"reference": reference, **data})

    @classmethod
    def disburse(
        cls,
        amount: Decimal,
        phone_number: str,
        reference: str,
    ) -> ProviderPaymentResult:
        """Send money to a mobile-money number (restaurant payouts)."""
        body = {
            "amount": cls._whole_units(amount),
            "phoneNumber": phone_number,
            "reference": reference,
        }
        data = cls._request("POST", "/disburse", operation="disburse", json=body)
        return ProviderPaymentResult.from_response({"reference": reference, **data})

    @classmethod
    def get_payment(cls, payment_id: str) -> ProviderPaymentResult:
        """Fetch the provider's current view of a payment."""
        data = cls._request("GET", f"/payments/{payment_id}", operation="get_payment")
        return ProviderPaymentResult.from_response(data)

    # =========================================================================
    # Transport
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send a request, retrying transient failures with backoff.

        POSTs are not retried after a timeout, since the provider may have
        accepted the request.
        """
        logger = cls.get_logger()
        timeout = getattr(settings, "NKWA_API_TIMEOUT_SECONDS", 10)
        max_retries = getattr(settings, "NKWA_MAX_RETRIES", 2)
        url = f"{cls._base_url()}{path}"
        log_context = {"operation": operation, "path": path}

        attempt = 0
        while True:
            start_time = time.time()
            logger.info("Starting provider operation", extra={**log_context, "attempt": attempt})
            try:
                response = requests.request(
                    method, url, headers=cls._headers(), json=json, timeout=timeout
                )
                duration_ms = (time.time() - start_time) * 1000
                data = cls._parse_response(response, log_context, duration_ms)
                logger.info(
                    "Provider operation completed",
                    extra={**log_context, "duration_ms": duration_ms, "status": data.get("status")},
                )
                return data
            except requests.RequestException as e:
                duration_ms = (time.time() - start_time) * 1000
                error = cls._translate_transport_error(e, log_context, duration_ms)
            except ProviderError as e:
                error = e

            if not error.is_retryable or attempt >= max_retries:
                raise error
            if method != "GET" and isinstance(error, ProviderTimeoutError):
                # The payment may already exist; caller re-checks with get_payment
                raise error
            delay = backoff_delay(attempt)
            logger.warning(
                f"Retrying provider operation in {delay:.2f}s",
                extra={**log_context, "attempt": attempt, "error_code": error.error_code},
            )
            time.sleep(delay)
            attempt += 1

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _parse_response(
        cls,
        response: requests.Response,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> dict[str, Any]:
        """
        Return the JSON body of a successful response, or raise the matching
        domain exception.
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms, "http_status": response.status_code}

        if response.ok:
            try:
                data = response.json()
            except ValueError as e:
                raise ProviderUnavailableError(
                    "Provider returned a non-JSON response",
                    status_code=response.status_code,
                ) from e
            return data if isinstance(data, dict) else {"data": data}

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text[:200]}
        message = str(body.get("message") or body.get("error") or response.reason)

        if response.status_code in (401, 403):
            logger.error("Provider rejected credentials", extra=log_context)
            raise ProviderAuthenticationError(message, status_code=response.status_code)
        if response.status_code == 429:
            logger.warning("Rate limited by provider", extra=log_context)
            raise ProviderRateLimitError(message, status_code=response.status_code)
        if response.status_code >= 500:
            logger.error("Provider unavailable", extra=log_context)
            raise ProviderUnavailableError(message, status_code=response.status_code)

        logger.error(
            "Invalid request to provider",
            extra={**log_context, "provider_message": message},
        )
        raise ProviderRequestError(message, status_code=response.status_code, details={"body": body})

    @classmethod
    def _translate_transport_error(
        cls,
        error: requests.RequestException,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> ProviderError:
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, requests.Timeout):
            logger.error("Provider request timed out", extra=log_context)
            return ProviderTimeoutError("Provider request timed out")

        logger.error("Connection error to provider", extra=log_context, exc_info=True)
        return ProviderUnavailableError(f"Could not reach provider: {error.__class__.__name__}")
