"""
Infrastructure endpoints that sit outside the chat domain.
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check for load balancers and orchestration liveness checks.

    The database is the only hard dependency: without it no message can be
    stored, so a failure there returns 503. Cache and channel layer failures
    only degrade presence and typing, and are reported without failing the
    check.

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "channel_layer": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "channel_layer": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        cache.set("health_check", "ok", timeout=1)
        ok = cache.get("health_check") == "ok"
        health_status["cache"] = "connected" if ok else "disconnected"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        health_status["cache"] = "disconnected"

    try:
        layer = get_channel_layer()
        if layer is None:
            health_status["channel_layer"] = "not_configured"
        else:
            async_to_sync(layer.send)("health-check", {"type": "health.ping"})
            health_status["channel_layer"] = "connected"
    except Exception:
        logger.warning("Health check: channel layer unreachable", exc_info=True)
        health_status["channel_layer"] = "disconnected"

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)
