"""
Tests for the Nkwa Pay adapter.

Tests cover:
- Request shape (URL, headers, whole-unit amounts, timeout)
- Error translation for each HTTP status class
- Retry with backoff on transient errors, and no retry of timed-out POSTs
- Helper functions (is_retryable_provider_error, backoff_delay)
"""

import logging
from decimal import Decimal
from unittest.mock import patch

import pytest
import requests

from payments.adapters import (
    NkwaPayAdapter,
    ProviderPaymentResult,
    backoff_delay,
    is_retryable_provider_error,
)
from payments.exceptions import (
    ProviderAuthenticationError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)


# =============================================================================
# Successful Operations
# =============================================================================


class TestOperations:
    def test_collect(self, mock_request, make_response, payment_response):
        mock_request.return_value = make_response(200, payment_response)

        result = NkwaPayAdapter.collect(
            amount=Decimal("1049.50"),
            phone_number="237670000001",
            reference="ORD-1709251200000-7",
        )

        assert isinstance(result, ProviderPaymentResult)
        assert result.id == "pay_abc123"
        assert result.status == "pending"
        assert result.amount == Decimal("1050")
        assert result.reference == "ORD-1709251200000-7"
        assert result.phone_number == "237670000001"

        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://api.pay.test/collect")
        assert kwargs["json"] == {
            "amount": 1050,
            "phoneNumber": "237670000001",
            "reference": "ORD-1709251200000-7",
        }
        assert kwargs["headers"]["X-API-Key"] == "test-api-key"
        assert kwargs["timeout"] == 7

    def test_disburse(self, mock_request, make_response, payment_response):
        mock_request.return_value = make_response(
            200, {**payment_response, "paymentType": "disbursement"}
        )

        result = NkwaPayAdapter.disburse(
            amount=Decimal("29"), phone_number="237670000000", reference="WDL-1-1"
        )

        assert result.payment_type == "disbursement"
        assert mock_request.call_args.args == ("POST", "https://api.pay.test/disburse")

    def test_get_payment(self, mock_request, make_response, payment_response):
        mock_request.return_value = make_response(
            200, {**payment_response, "status": "success", "reference": "ORD-1-1"}
        )

        result = NkwaPayAdapter.get_payment("pay_abc123")

        assert result.status == "success"
        assert result.reference == "ORD-1-1"
        args, kwargs = mock_request.call_args
        assert args == ("GET", "https://api.pay.test/payments/pay_abc123")
        assert kwargs["json"] is None

    def test_result_defaults(self):
        result = ProviderPaymentResult.from_response({})

        assert result.id == ""
        assert result.status == "pending"
        assert result.amount is None


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    @pytest.mark.parametrize("status_code", [401, 403])
    def test_bad_credentials(self, mock_request, make_response, no_sleep, status_code):
        mock_request.return_value = make_response(status_code, {"message": "Invalid API key"})

        with pytest.raises(ProviderAuthenticationError) as exc_info:
            NkwaPayAdapter.get_payment("pay_abc123")

        assert exc_info.value.message == "Invalid API key"
        assert mock_request.call_count == 1
        no_sleep.assert_not_called()

    def test_rejected_request(self, mock_request, make_response, no_sleep):
        body = {"error": "phoneNumber is invalid"}
        mock_request.return_value = make_response(422, body)

        with pytest.raises(ProviderRequestError) as exc_info:
            NkwaPayAdapter.collect(Decimal("100"), "12", "ORD-1-1")

        assert exc_info.value.message == "phoneNumber is invalid"
        assert exc_info.value.details["body"] == body
        assert mock_request.call_count == 1

    def test_rejection_logged_with_provider_message(self, mock_request, make_response, no_sleep):
        mock_request.return_value = make_response(400, {"message": "invalid phone"})

        with patch.object(NkwaPayAdapter, "get_logger") as get_logger:
            with pytest.raises(ProviderRequestError):
                NkwaPayAdapter.collect(Decimal("100"), "237600000000", "ORD-1-1")

        extra = get_logger.return_value.error.call_args.kwargs["extra"]
        assert extra["provider_message"] == "invalid phone"
        reserved = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
        assert not set(extra) & reserved

    def test_error_body_not_json(self, mock_request, make_response, no_sleep):
        mock_request.return_value = make_response(400, text="<html>Bad Request</html>")

        with pytest.raises(ProviderRequestError) as exc_info:
            NkwaPayAdapter.get_payment("pay_abc123")

        assert "Bad Request" in exc_info.value.message

    def test_success_body_not_json(self, mock_request, make_response, no_sleep, settings):
        settings.NKWA_MAX_RETRIES = 0
        mock_request.return_value = make_response(200, text="maintenance")

        with pytest.raises(ProviderUnavailableError):
            NkwaPayAdapter.get_payment("pay_abc123")


# =============================================================================
# Retries
# =============================================================================


class TestRetries:
    def test_server_error_retried_then_succeeds(
        self, mock_request, make_response, no_sleep, payment_response
    ):
        mock_request.side_effect = [
            make_response(502, {"message": "Bad gateway"}),
            make_response(503, {"message": "Unavailable"}),
            make_response(200, payment_response),
        ]

        result = NkwaPayAdapter.collect(Decimal("1050"), "237670000001", "ORD-1-1")

        assert result.id == "pay_abc123"
        assert mock_request.call_count == 3
        assert no_sleep.call_count == 2

    def test_gives_up_after_max_retries(self, mock_request, make_response, no_sleep):
        mock_request.return_value = make_response(500, {"message": "Internal error"})

        with pytest.raises(ProviderUnavailableError):
            NkwaPayAdapter.get_payment("pay_abc123")

        assert mock_request.call_count == 3

    def test_rate_limit_retried(self, mock_request, make_response, no_sleep, payment_response):
        mock_request.side_effect = [
            make_response(429, {"message": "Slow down"}),
            make_response(200, payment_response),
        ]

        NkwaPayAdapter.get_payment("pay_abc123")

        assert mock_request.call_count == 2

    def test_rate_limit_exhausted(self, mock_request, make_response, no_sleep, settings):
        settings.NKWA_MAX_RETRIES = 0
        mock_request.return_value = make_response(429, {"message": "Slow down"})

        with pytest.raises(ProviderRateLimitError):
            NkwaPayAdapter.get_payment("pay_abc123")

    def test_post_timeout_not_retried(self, mock_request, no_sleep):
        mock_request.side_effect = requests.Timeout()

        with pytest.raises(ProviderTimeoutError):
            NkwaPayAdapter.collect(Decimal("1050"), "237670000001", "ORD-1-1")

        assert mock_request.call_count == 1
        no_sleep.assert_not_called()

    def test_get_timeout_retried(self, mock_request, make_response, no_sleep, payment_response):
        mock_request.side_effect = [requests.Timeout(), make_response(200, payment_response)]

        result = NkwaPayAdapter.get_payment("pay_abc123")

        assert result.id == "pay_abc123"
        assert mock_request.call_count == 2

    def test_connection_error(self, mock_request, no_sleep):
        mock_request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(ProviderUnavailableError) as exc_info:
            NkwaPayAdapter.get_payment("pay_abc123")

        assert "ConnectionError" in exc_info.value.message
        assert mock_request.call_count == 3


# =============================================================================
# Helper Functions
# =============================================================================


class TestHelpers:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (ProviderUnavailableError("down"), True),
            (ProviderTimeoutError("slow"), True),
            (ProviderRateLimitError("busy"), True),
            (ProviderRequestError("bad"), False),
            (ProviderAuthenticationError("key"), False),
            (ValueError("not a provider error"), False),
        ],
    )
    def test_is_retryable_provider_error(self, error, expected):
        assert is_retryable_provider_error(error) is expected

    @pytest.mark.parametrize("attempt,base_delay", [(0, 1.0), (1, 2.0), (3, 8.0)])
    def test_backoff_delay_grows_with_jitter(self, attempt, base_delay):
        delay = backoff_delay(attempt)

        assert base_delay <= delay <= base_delay * 1.25

    def test_backoff_delay_capped(self):
        assert backoff_delay(20, max_delay=60.0) <= 75.0
