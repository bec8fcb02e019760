"""
Security Gate: lockout-protected withdrawal security code per restaurant.

verify() runs in its own transaction holding a row lock on the restaurant's
SecuritySetting, so the failed-attempt counter and the lockout check can
never interleave between concurrent requests. Its result is committed before
any withdrawal work starts, so a failed settlement never rolls a counter back.

Usage:
    from payments.services import SecurityGate

    decision = SecurityGate.verify(restaurant, "1234")
    if decision.outcome == SecurityCheckOutcome.LOCKED:
        ...  # decision.retry_after seconds

Settings:
    SECURITY_GATE_MAX_ATTEMPTS: mismatches before lockout (default: 5)
    SECURITY_GATE_LOCKOUT_MINUTES: lockout duration (default: 30)
    WITHDRAWAL_DEFAULT_SECURITY_CODE: placeholder used on first access when
        no code was provisioned; empty means fail closed
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.exceptions import ConflictError, ValidationError
from core.services import BaseService
from payments.exceptions import SecurityCodeNotConfigured
from payments.models import SecurityCodeChange, SecuritySetting
from payments.state_machines import SecurityCheckOutcome, SecuritySettingType

if TYPE_CHECKING:
    from restaurants.models import Restaurant

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 32


@dataclass(frozen=True)
class GateDecision:
    outcome: str
    remaining_attempts: int
    retry_after: int | None = None

    @property
    def approved(self) -> bool:
        return self.outcome == SecurityCheckOutcome.APPROVED


class SecurityGate(BaseService):
    """Verifies, provisions and rotates withdrawal security codes."""

    setting_type = SecuritySettingType.WITHDRAWAL_SECURITY_CODE

    @staticmethod
    def max_attempts() -> int:
        return settings.SECURITY_GATE_MAX_ATTEMPTS

    @staticmethod
    def lockout_duration() -> timedelta:
        return timedelta(minutes=settings.SECURITY_GATE_LOCKOUT_MINUTES)

    # ==========================================================================
    # Verification
    # ==========================================================================

    @classmethod
    def verify(cls, restaurant: Restaurant, candidate: str) -> GateDecision:
        """
        Check ``candidate`` against the restaurant's code.

        - Locked: no attempt is consumed, LOCKED with the remaining lock time
        - Mismatch: counter += 1; reaching the maximum locks the code and
          returns LOCKED, otherwise DENIED
        - Match: counter and lock reset, APPROVED

        Raises:
            SecurityCodeNotConfigured: No code and no placeholder configured
        """
        logger = cls.get_logger()
        log_extra = {"restaurant_id": str(restaurant.pk)}

        with transaction.atomic():
            setting = cls._lock_setting(restaurant)
            now = timezone.now()

            if setting.is_locked(now):
                retry_after = cls._seconds_until(setting.lock_until, now)
                logger.warning("Security code check refused: locked", extra=log_extra)
                return GateDecision(SecurityCheckOutcome.LOCKED, 0, retry_after)

            if setting.lock_until is not None:
                # Lock expired; start a fresh window
                setting.failed_attempts = 0
                setting.lock_until = None

            if setting.check_code(candidate or ""):
                setting.failed_attempts = 0
                setting.lock_until = None
                setting.save(update_fields=["failed_attempts", "lock_until", "updated_at"])
                logger.info("Security code approved", extra=log_extra)
                return GateDecision(SecurityCheckOutcome.APPROVED, cls.max_attempts())

            setting.failed_attempts += 1
            setting.last_failed_attempt_at = now
            remaining = max(cls.max_attempts() - setting.failed_attempts, 0)
            if remaining == 0:
                setting.lock_until = now + cls.lockout_duration()
            setting.save(
                update_fields=[
                    "failed_attempts",
                    "last_failed_attempt_at",
                    "lock_until",
                    "updated_at",
                ]
            )

        if remaining == 0:
            retry_after = int(cls.lockout_duration().total_seconds())
            logger.warning(
                "Security code locked after repeated failures",
                extra={**log_extra, "failed_attempts": setting.failed_attempts},
            )
            return GateDecision(SecurityCheckOutcome.LOCKED, 0, retry_after)

        logger.warning(
            "Security code denied",
            extra={**log_extra, "remaining_attempts": remaining},
        )
        return GateDecision(SecurityCheckOutcome.DENIED, remaining)

    # ==========================================================================
    # Management
    # ==========================================================================

    @classmethod
    def provision(cls, restaurant: Restaurant, code: str, author) -> SecuritySetting:
        """
        First-time setup of a restaurant's code.

        Raises:
            ConflictError: A code is already configured
            ValidationError: Code length out of range
        """
        cls._validate_code(code)
        with transaction.atomic():
            if cls._queryset(restaurant).exists():
                raise ConflictError(
                    "A security code is already configured",
                    error_code="SECURITY_CODE_EXISTS",
                    details={"restaurant_id": str(restaurant.pk)},
                )
            setting = SecuritySetting(
                restaurant=restaurant,
                setting_type=cls.setting_type,
                last_changed_by=author,
            )
            setting.set_code(code)
            setting.save()

        cls.get_logger().info(
            "Security code provisioned",
            extra={"restaurant_id": str(restaurant.pk), "user_id": getattr(author, "pk", None)},
        )
        return setting

    @classmethod
    def rotate(
        cls,
        restaurant: Restaurant,
        new_code: str,
        author,
        reason: str = "",
    ) -> SecuritySetting:
        """
        Replace the code, keeping only the previous hash in the audit trail.

        Resets the failed-attempt counter and any lock.
        """
        cls._validate_code(new_code)
        with transaction.atomic():
            setting = cls._lock_setting(restaurant, create_placeholder=False)
            SecurityCodeChange.objects.create(
                setting=setting,
                previous_hash=setting.code_hash,
                changed_by=author,
                reason=reason or "Security update",
            )
            setting.set_code(new_code)
            setting.failed_attempts = 0
            setting.lock_until = None
            setting.last_changed_by = author
            setting.save()

        cls.get_logger().info(
            "Security code rotated",
            extra={"restaurant_id": str(restaurant.pk), "user_id": getattr(author, "pk", None)},
        )
        return setting

    @classmethod
    def status(cls, restaurant: Restaurant) -> dict[str, Any]:
        setting = cls._queryset(restaurant).first()
        if setting is None:
            return {
                "is_set": False,
                "is_locked": False,
                "remaining_attempts": cls.max_attempts(),
                "lock_until": None,
                "last_changed_at": None,
            }
        now = timezone.now()
        locked = setting.is_locked(now)
        if locked:
            remaining = 0
        elif setting.lock_until is not None:
            remaining = cls.max_attempts()
        else:
            remaining = max(cls.max_attempts() - setting.failed_attempts, 0)
        return {
            "is_set": True,
            "is_locked": locked,
            "remaining_attempts": remaining,
            "lock_until": setting.lock_until if locked else None,
            "last_changed_at": setting.updated_at,
        }

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @classmethod
    def _queryset(cls, restaurant: Restaurant):
        return SecuritySetting.objects.filter(
            restaurant=restaurant, setting_type=cls.setting_type, is_active=True
        )

    @classmethod
    def _lock_setting(cls, restaurant: Restaurant, create_placeholder: bool = True) -> SecuritySetting:
        setting = cls._queryset(restaurant).select_for_update().first()
        if setting is not None:
            return setting

        placeholder = settings.WITHDRAWAL_DEFAULT_SECURITY_CODE
        if not create_placeholder or not placeholder:
            raise SecurityCodeNotConfigured(
                "No withdrawal security code is configured for this restaurant",
                details={"restaurant_id": str(restaurant.pk)},
            )

        cls.get_logger().warning(
            "Creating withdrawal security code from the configured placeholder; "
            "rotate it before production use",
            extra={"restaurant_id": str(restaurant.pk)},
        )
        setting = SecuritySetting(restaurant=restaurant, setting_type=cls.setting_type)
        setting.set_code(placeholder)
        setting.save()
        return cls._queryset(restaurant).select_for_update().get(pk=setting.pk)

    @staticmethod
    def _validate_code(code: str) -> None:
        if not code or not (MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH):
            raise ValidationError(
                f"Security code must be {MIN_CODE_LENGTH}-{MAX_CODE_LENGTH} characters",
                error_code="INVALID_SECURITY_CODE",
            )

    @staticmethod
    def _seconds_until(moment: datetime, now: datetime) -> int:
        return max(math.ceil((moment - now).total_seconds()), 1)
