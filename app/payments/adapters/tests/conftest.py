"""
Pytest fixtures for Nkwa Pay adapter tests.

HTTP is never performed: ``requests.request`` is patched and fed canned
``requests.Response`` objects, and backoff sleeps are skipped.

Sections:
    - Settings
    - Transport Fixtures
"""

import json
from unittest.mock import patch

import pytest
import requests


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def nkwa_api_settings(settings):
    settings.NKWA_API_BASE_URL = "https://api.pay.test/"
    settings.NKWA_API_KEY = "test-api-key"
    settings.NKWA_API_TIMEOUT_SECONDS = 7
    settings.NKWA_MAX_RETRIES = 2
    return settings


# =============================================================================
# Transport Fixtures
# =============================================================================


@pytest.fixture
def make_response():
    """Return a builder of ``requests.Response`` objects with a JSON body (or raw text)."""

    def _make(status_code: int, body=None, text: str | None = None) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response.reason = "OK" if status_code < 400 else "Error"
        response.url = "https://api.pay.test/"
        if text is not None:
            response._content = text.encode()
        else:
            response._content = json.dumps(body if body is not None else {}).encode()
        return response

    return _make


@pytest.fixture
def mock_request():
    """Patched ``requests.request``; set ``side_effect`` or ``return_value``."""
    with patch("payments.adapters.nkwa_adapter.requests.request") as mocked:
        yield mocked


@pytest.fixture
def no_sleep():
    with patch("payments.adapters.nkwa_adapter.time.sleep") as mocked:
        yield mocked


@pytest.fixture
def payment_response():
    return {
        "id": "pay_abc123",
        "amount": 1050,
        "currency": "XAF",
        "phoneNumber": "237670000001",
        "status": "pending",
        "paymentType": "collection",
    }
