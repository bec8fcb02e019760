"""
Core Application - Infrastructure & Base Classes

Shared building blocks for the ordering, payment and realtime apps. No
domain logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic locking counter

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Locks (import from core.locks):
    - lock_for_update: SELECT ... FOR UPDATE with NotFoundError
    - check_version: Optimistic version check under a row lock

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - PermissionDeniedError: Authorization failures
    - ConflictError: State conflicts (illegal transitions, lost races)
    - RateLimitError: Temporary lockouts
    - ExternalServiceError: Payment provider failures

API error rendering (core.exception_handler):
    - application_exception_handler: DRF EXCEPTION_HANDLER

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
    from core.services import BaseService, ServiceResult
    from core.exceptions import ValidationError, NotFoundError

Note:
    - Business logic should NOT go here. Extend core classes in your domain apps.
    - Django models, model mixins and locks are NOT imported here to avoid
      AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    StaleRecordError,
    ValidationError,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "StaleRecordError",
    "RateLimitError",
    "ExternalServiceError",
]
