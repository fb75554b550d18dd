"""
Celery tasks for chat app.

This module defines periodic tasks for:
- Presence expiry (connections that stopped heartbeating)

Related files:
    - services/presence.py: PresenceHub
    - migrations/0002_add_celery_beat_schedules.py: Beat schedule

Usage:
    from chat.tasks import sweep_stale_presence

    sweep_stale_presence.delay()
"""

import logging

from asgiref.sync import async_to_sync
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def sweep_stale_presence(self, max_age_seconds: float | None = None) -> list[int]:
    """
    Expire users whose last heartbeat is older than the presence TTL.

    A client that vanishes without closing its socket (network loss, killed
    tab) never sends a disconnect. This task removes it from the online set
    and rebroadcasts presence:update when anything changed.

    Args:
        max_age_seconds: Override for settings.CHAT_PRESENCE_TTL_SECONDS

    Returns:
        Ids of users that were expired
    """
    from chat.services.presence import PresenceHub

    hub = PresenceHub()
    expired = hub.sweep(max_age_seconds)
    if expired:
        async_to_sync(hub.broadcast)()
        logger.info(f"Presence sweep expired {len(expired)} users")
    return expired
