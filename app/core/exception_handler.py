"""
DRF exception handler that renders application errors.

Registered in settings as REST_FRAMEWORK["EXCEPTION_HANDLER"]. Errors from
the core.exceptions hierarchy become JSON bodies produced by
BaseApplicationError.to_dict() with the status carried by the exception
class. Everything else falls through to DRF's default handler.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError, RateLimitError

logger = logging.getLogger(__name__)


def application_exception_handler(exc, context):
    """Render BaseApplicationError subclasses, defer the rest to DRF."""
    if not isinstance(exc, BaseApplicationError):
        return exception_handler(exc, context)

    view = context.get("view")
    logger.info(
        f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'view'}: {exc}",
        extra={"error_code": exc.error_code},
    )

    response = Response(exc.to_dict(), status=exc.http_status)
    if isinstance(exc, RateLimitError) and exc.retry_after is not None:
        response["Retry-After"] = str(exc.retry_after)
    return response
