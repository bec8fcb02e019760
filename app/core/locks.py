"""
Row-level concurrency helpers.

Two complementary mechanisms, both built on the database:

1. **Pessimistic** (lock_for_update)
   - SELECT ... FOR UPDATE on a single row
   - Use for: webhook application, security code checks

2. **Optimistic** (check_version)
   - Compare a client-supplied version before locking
   - Use for: staff edits made from a possibly stale screen

Usage:
    from core.locks import check_version

    with transaction.atomic():
        order = check_version(Order, order_id, expected_version=3)
        order.customer_notes = "Extra spicy"
        order.save()  # version -> 4

Note:
    Both helpers must run inside a transaction; the row lock is held until it
    commits or rolls back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models

from core.exceptions import NotFoundError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

T = TypeVar("T", bound=models.Model)


def lock_for_update(model_class: type[T], pk: Any) -> T:
    """
    Lock and return a row, raising NotFoundError when it is missing.
    """
    instance = model_class.objects.select_for_update().filter(pk=pk).first()
    if instance is None:
        raise NotFoundError(
            f"{model_class.__name__} {pk} not found",
            error_code=f"{model_class.__name__.upper()}_NOT_FOUND",
            details={"id": str(pk)},
        )
    return instance


def check_version(model_class: type[T], pk: Any, expected_version: int) -> T:
    """
    Lock a row only if it still has the version the caller expects.

    Raises:
        StaleRecordError: The row exists with another version
        NotFoundError: The row does not exist
    """
    instance = (
        model_class.objects.select_for_update()
        .filter(pk=pk, version=expected_version)
        .first()
    )
    if instance is not None:
        return instance

    current = model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
    if current is None:
        raise NotFoundError(
            f"{model_class.__name__} {pk} not found",
            error_code=f"{model_class.__name__.upper()}_NOT_FOUND",
            details={"id": str(pk)},
        )
    raise StaleRecordError(
        f"{model_class.__name__} {pk} was modified (expected version "
        f"{expected_version}, found {current})",
        details={
            "id": str(pk),
            "expected_version": expected_version,
            "current_version": current,
        },
    )
