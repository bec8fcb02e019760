"""
Tests for ServiceResult, BaseService and the row lock helpers.
"""

from __future__ import annotations

import logging

import pytest

from core.exceptions import ExternalServiceError, NotFoundError, StaleRecordError
from core.locks import check_version, lock_for_update
from core.services import BaseService, ServiceResult
from orders.models import Order
from orders.tests.factories import OrderFactory


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result
        assert result.to_response() == {"success": True, "data": {"id": 1}}

    def test_failure(self):
        result = ServiceResult.failure("Nope", error_code="NOPE")

        assert not result
        assert result.to_response() == {"success": False, "error": "Nope", "error_code": "NOPE"}

    def test_from_application_error_keeps_code(self):
        result = ServiceResult.from_exception(
            ExternalServiceError("Provider down", error_code="PROVIDER_UNAVAILABLE")
        )

        assert result.error == "Provider down"
        assert result.error_code == "PROVIDER_UNAVAILABLE"

    def test_from_other_exception_uses_class_name(self):
        assert ServiceResult.from_exception(KeyError("x")).error_code == "KEYERROR"


class TestBaseService:
    def test_handle_exception_logs_and_converts(self, caplog):
        class LookupService(BaseService):
            pass

        with caplog.at_level(logging.WARNING):
            result = LookupService.handle_exception(
                NotFoundError("gone"), "lookup", log_level=logging.WARNING
            )

        assert result.error_code == "NOT_FOUND"
        assert "lookup: [NOT_FOUND] gone" in caplog.text
        assert any(r.name.endswith(".LookupService") for r in caplog.records)


@pytest.mark.django_db
class TestLocks:
    def test_lock_for_update_returns_row(self):
        order = OrderFactory()

        assert lock_for_update(Order, order.pk).pk == order.pk

    def test_lock_for_update_missing(self):
        order = OrderFactory()
        pk = order.pk
        Order.objects.filter(pk=pk).delete()

        with pytest.raises(NotFoundError) as exc_info:
            lock_for_update(Order, pk)

        assert exc_info.value.error_code == "ORDER_NOT_FOUND"

    def test_check_version_matches(self):
        order = OrderFactory()

        assert check_version(Order, order.pk, order.version).pk == order.pk

    def test_check_version_stale(self):
        order = OrderFactory()
        order.customer_notes = "No onions"
        order.save()

        with pytest.raises(StaleRecordError) as exc_info:
            check_version(Order, order.pk, 1)

        assert exc_info.value.details["current_version"] == 2
