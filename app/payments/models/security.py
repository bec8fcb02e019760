"""
Security Gate storage: per-restaurant withdrawal security code.

The code is stored as a salted one-way hash produced by Django's password
hashers; the plain code is never persisted or logged. Lockout bookkeeping
lives on the same row so it can be updated under one row lock.
"""

from __future__ import annotations

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import SecuritySettingType


class SecuritySetting(UUIDPrimaryKeyMixin, BaseModel):
    """
    Hashed security code for one restaurant and setting type.

    Fields:
        code_hash: Output of make_password()
        failed_attempts: Consecutive mismatches since the last success
        last_failed_attempt_at: Time of the last mismatch
        lock_until: Verification refused until this time
        last_changed_by: Who provisioned or last rotated the code
    """

    restaurant = models.ForeignKey(
        "restaurants.Restaurant",
        on_delete=models.CASCADE,
        related_name="security_settings",
    )

    setting_type = models.CharField(
        max_length=50,
        choices=SecuritySettingType.choices,
        default=SecuritySettingType.WITHDRAWAL_SECURITY_CODE,
    )

    code_hash = models.CharField(max_length=255)

    description = models.CharField(
        max_length=255,
        blank=True,
        default="Security code required for payment withdrawals",
    )

    is_active = models.BooleanField(default=True)

    failed_attempts = models.PositiveIntegerField(default=0)

    last_failed_attempt_at = models.DateTimeField(null=True, blank=True)

    lock_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Temporary lock after too many failed attempts",
    )

    last_changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Security Setting"
        verbose_name_plural = "Security Settings"
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant", "setting_type"],
                name="unique_security_setting_per_restaurant",
            ),
        ]

    def __str__(self) -> str:
        return f"SecuritySetting({self.restaurant_id}, {self.setting_type})"

    def set_code(self, raw_code: str) -> None:
        self.code_hash = make_password(raw_code)

    def check_code(self, raw_code: str) -> bool:
        return check_password(raw_code, self.code_hash)

    def is_locked(self, now=None) -> bool:
        now = now or timezone.now()
        return self.lock_until is not None and self.lock_until > now


class SecurityCodeChange(UUIDPrimaryKeyMixin, BaseModel):
    """Audit entry written on every rotation. Holds the previous hash only."""

    setting = models.ForeignKey(
        SecuritySetting,
        on_delete=models.CASCADE,
        related_name="changes",
    )

    previous_hash = models.CharField(max_length=255)

    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
    )

    reason = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Security Code Change"
        verbose_name_plural = "Security Code Changes"

    def __str__(self) -> str:
        return f"SecurityCodeChange({self.setting_id}, {self.created_at})"
