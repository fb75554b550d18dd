"""
Async client for the chat gateway.

Pure Python (no Django): talks to the HTTP API through httpx and keeps a
per-conversation optimistic message list in ConversationSyncEngine.
"""

from .models import Composer, Draft, LocalMessage, SendState, SyncState
from .signals import TypingTracker
from .sync_engine import ConversationSyncEngine
from .transport import GatewayClient

__all__ = [
    "Composer",
    "ConversationSyncEngine",
    "Draft",
    "GatewayClient",
    "LocalMessage",
    "SendState",
    "SyncState",
    "TypingTracker",
]
