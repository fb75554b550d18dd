"""
Chat services.

Layers, lowest first:
    store.MessageStore            Single writer of messages (raises)
    read_state.ReadStateTracker   Read markers and unread computation (raises)
    presence.PresenceHub          Ephemeral online set + broadcast
    gateway.ConversationGateway   Authorization/validation chokepoint
                                  (returns ServiceResult)

Usage:
    from chat.services import ConversationGateway

    result = ConversationGateway.react(user, conversation_id, message_id, "📚")
"""

from chat.services.gateway import (
    ConversationGateway,
    DeleteMode,
    DirectThread,
    MessageListing,
)
from chat.services.presence import (
    InMemoryPresenceRegistry,
    PresenceHub,
    PresenceRegistry,
    RedisPresenceRegistry,
    get_presence_registry,
    set_presence_registry,
)
from chat.services.read_state import ReadStateTracker
from chat.services.store import MessageStore

__all__ = [
    "ConversationGateway",
    "DeleteMode",
    "DirectThread",
    "MessageListing",
    "MessageStore",
    "ReadStateTracker",
    "PresenceHub",
    "PresenceRegistry",
    "InMemoryPresenceRegistry",
    "RedisPresenceRegistry",
    "get_presence_registry",
    "set_presence_registry",
]
