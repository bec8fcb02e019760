"""
Authenticity check for Nkwa Pay notifications.

The provider signs ``SHA256(timestamp + callback_url + raw_body)`` with its
RSA key (PKCS#1 v1.5, SHA-256) and sends the base64 signature in
``X-Signature`` and the timestamp in ``X-Timestamp``.

Usage:
    from payments.webhooks.signature import verify_signature

    verify_signature(
        request.body,
        request.headers.get("X-Signature", ""),
        request.headers.get("X-Timestamp", ""),
    )  # raises InvalidSignature
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from datetime import datetime, timezone as dt_timezone

from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from payments.exceptions import InvalidSignature

# Unix timestamps above this are taken to be milliseconds
MILLISECOND_TIMESTAMP_THRESHOLD = 10**11


def signed_digest(raw_body: bytes, timestamp: str, callback_url: str) -> bytes:
    """Return the SHA-256 digest the provider signs."""
    message = timestamp.encode() + callback_url.encode() + raw_body
    return hashlib.sha256(message).digest()


def parse_signature_timestamp(value: str) -> datetime | None:
    """Parse an ``X-Timestamp`` value (unix seconds, unix ms or ISO 8601)."""
    value = value.strip()
    if value.lstrip("-").isdigit():
        number = int(value)
        if abs(number) > MILLISECOND_TIMESTAMP_THRESHOLD:
            number = number / 1000
        try:
            return datetime.fromtimestamp(number, tz=dt_timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    parsed = parse_datetime(value)
    if parsed is not None and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def load_public_key(pem: str) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(pem.encode())
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidSignature("Provider public key could not be loaded") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidSignature("Provider public key is not an RSA key")
    return key


def verify_signature(
    raw_body: bytes,
    signature_b64: str,
    timestamp: str,
    *,
    public_key_pem: str | None = None,
    callback_url: str | None = None,
    tolerance_seconds: int | None = None,
    now: datetime | None = None,
) -> None:
    """
    Verify a notification, raising InvalidSignature when it is not authentic.

    Settings supply the key (NKWA_PUBLIC_KEY), callback URL
    (NKWA_CALLBACK_URL) and time window
    (PAYMENT_WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS, 0 disables it) unless
    given explicitly.
    """
    if public_key_pem is None:
        public_key_pem = settings.NKWA_PUBLIC_KEY
    if callback_url is None:
        callback_url = settings.NKWA_CALLBACK_URL
    if tolerance_seconds is None:
        tolerance_seconds = settings.PAYMENT_WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS

    if not signature_b64 or not timestamp:
        raise InvalidSignature(
            "Missing signature headers",
            details={"has_signature": bool(signature_b64), "has_timestamp": bool(timestamp)},
        )
    if not public_key_pem:
        raise InvalidSignature("No provider public key configured")

    if tolerance_seconds:
        signed_at = parse_signature_timestamp(timestamp)
        if signed_at is None:
            raise InvalidSignature("Unreadable signature timestamp")
        skew = abs(((now or timezone.now()) - signed_at).total_seconds())
        if skew > tolerance_seconds:
            raise InvalidSignature(
                "Signature timestamp outside tolerance window",
                details={"skew_seconds": int(skew), "tolerance_seconds": tolerance_seconds},
            )

    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSignature("Signature is not valid base64") from e

    key = load_public_key(public_key_pem)
    digest = signed_digest(raw_body, timestamp, callback_url)
    try:
        key.verify(signature, digest, padding.PKCS1v15(), hashes.SHA256())
    except CryptoInvalidSignature as e:
        raise InvalidSignature("Signature mismatch") from e
