"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Optimistic locking counter bumped on every save

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Order(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        ...

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Order, restaurant and withdrawal identifiers travel over the public API
    and the WebSocket channel, so they must not reveal record counts.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic locking support through a monotonically increasing version.

    Every save of an existing row increments ``version`` atomically in the
    database with an F() expression, then reloads the new value. Callers that
    read a row, let a user think, and write later can pass the version they
    read to ``core.locks.check_version`` to detect lost updates.

    Fields:
        version: Incremented on every update

    Usage:
        order = Order.objects.get(pk=order_id)
        order.customer_notes = "No onions"
        order.save()                 # version 1 -> 2
        assert order.version == 2
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Optimistic locking version, incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        is_update = (
            not self._state.adding
            and self.pk
            and not kwargs.get("force_insert", False)
        )

        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]

        super().save(*args, **kwargs)

        if is_update:
            # F() leaves an expression on the instance; load the real value
            self.refresh_from_db(fields=["version"])
