"""
Core views providing infrastructure endpoints.

Not part of the ordering or settlement domain; used by Docker health checks
and load balancers.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Report database and cache connectivity.

    The database is required: orders, webhook events and withdrawal batches
    all live there, so a lost connection returns 503. The cache only backs
    sessions, so a cache outage is reported but does not fail the check.

    Example Response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"

    # django-redis is configured with IGNORE_EXCEPTIONS, so a dead Redis
    # shows up as a cache miss rather than an exception
    cache.set("health_check", "ok", timeout=1)
    health_status["cache"] = (
        "connected" if cache.get("health_check") == "ok" else "disconnected"
    )

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JsonResponse(health_status, status=status_code)
