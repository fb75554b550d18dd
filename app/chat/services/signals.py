"""
Push-channel event helpers.

Ephemeral events travel over the Channels layer and are never persisted. This
module owns group naming and event payload shapes so the consumer, the
presence hub and the gateway agree on them.

Channel-layer message types (dispatched to ChatConsumer handlers):
    presence.update  -> presence:update {onlineUserIds}
    typing.start     -> typing:start {from, conversationId, expiresIn}
    typing.stop      -> typing:stop {from, conversationId}
    read.update      -> read:update {userId, conversationId, lastReadAt}

Sending is best-effort: a failed broadcast is logged and dropped. Clients
self-heal on their next state refresh.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import PRESENCE_CONFIG

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    """Group every connection of one user joins (peer-addressed signals)."""
    return f"{PRESENCE_CONFIG.USER_GROUP_PREFIX}{user_id}"


def conversation_group(conversation_id: int) -> str:
    """Group of connections that joined a conversation."""
    return f"{PRESENCE_CONFIG.CONVERSATION_GROUP_PREFIX}{conversation_id}"


def presence_event(online_user_ids: list[int]) -> dict:
    return {"type": "presence.update", "online_user_ids": sorted(online_user_ids)}


def typing_event(
    started: bool,
    from_user_id: int,
    conversation_id: int | None,
) -> dict:
    return {
        "type": "typing.start" if started else "typing.stop",
        "from_user_id": from_user_id,
        "conversation_id": conversation_id,
    }


def read_event(conversation_id: int, user_id: int, last_read_at: datetime) -> dict:
    return {
        "type": "read.update",
        "conversation_id": conversation_id,
        "user_id": user_id,
        "last_read_at": last_read_at.isoformat(),
    }


def broadcast_read_update(
    conversation_id: int, user_id: int, last_read_at: datetime
) -> None:
    """
    Tell members of a conversation that ``user_id`` has read up to an instant.

    Synchronous so it can run from views and transaction.on_commit hooks.
    """
    layer = get_channel_layer()
    if layer is None:
        return
    try:
        async_to_sync(layer.group_send)(
            conversation_group(conversation_id),
            read_event(conversation_id, user_id, last_read_at),
        )
    except Exception:
        logger.warning(
            f"Failed to broadcast read update for conversation {conversation_id}",
            exc_info=True,
        )
