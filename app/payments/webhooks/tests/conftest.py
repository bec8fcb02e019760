"""
Pytest fixtures for webhook tests.

Provides a throwaway RSA key pair standing in for the provider, a signer that
produces valid ``X-Signature``/``X-Timestamp`` headers, and orders to match
notifications against.

Usage:
    def test_paid(client, sign, pending_order):
        body = json.dumps({"id": "pay_1", "reference": pending_order.order_number,
                           "status": "success"}).encode()
        headers = sign(body)
"""

import base64
import json
from decimal import Decimal

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from django.utils import timezone

from orders.tests.factories import OrderFactory
from payments.webhooks.signature import signed_digest
from payments.webhooks.tests.factories import CALLBACK_URL, WEBHOOK_URL
from restaurants.tests.factories import RestaurantFactory


@pytest.fixture(scope="session")
def provider_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def provider_public_pem(provider_private_key):
    return (
        provider_private_key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture(autouse=True)
def nkwa_settings(settings, provider_public_pem):
    settings.NKWA_PUBLIC_KEY = provider_public_pem
    settings.NKWA_CALLBACK_URL = CALLBACK_URL
    settings.PAYMENT_WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS = 300
    settings.PAYMENT_WEBHOOK_ACK_INVALID_SIGNATURE = True
    return settings


@pytest.fixture
def sign(provider_private_key):
    """Return a function producing provider headers for a raw body."""

    def _sign(raw_body: bytes, timestamp: str | None = None, key=None) -> dict[str, str]:
        timestamp = timestamp or str(int(timezone.now().timestamp()))
        digest = signed_digest(raw_body, timestamp, CALLBACK_URL)
        signature = (key or provider_private_key).sign(
            digest, padding.PKCS1v15(), hashes.SHA256()
        )
        return {
            "HTTP_X_SIGNATURE": base64.b64encode(signature).decode(),
            "HTTP_X_TIMESTAMP": timestamp,
        }

    return _sign


@pytest.fixture
def post_webhook(client, sign):
    """POST a signed JSON payload to the webhook endpoint."""

    def _post(payload, headers=None):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return client.generic(
            "POST",
            WEBHOOK_URL,
            body,
            content_type="application/json",
            **(headers if headers is not None else sign(body)),
        )

    return _post


@pytest.fixture
def restaurant(db):
    return RestaurantFactory()


@pytest.fixture
def pending_order(db, restaurant):
    return OrderFactory(restaurant=restaurant, total_amount=Decimal("1000.00"))

