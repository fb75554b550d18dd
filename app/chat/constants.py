"""
Constants and configuration for the chat module.

This module centralizes limits for:
- Message payloads (body length, attachments, reply snippets)
- Polls (question length, option count)
- Reactions (emoji length)
- Presence and typing signals (TTLs, group names)
- Unread badges

Presence TTL and the presence registry backend can be overridden in Django
settings (CHAT_PRESENCE_TTL_SECONDS, CHAT_PRESENCE_REGISTRY).

Import example:
    from chat.constants import MESSAGE_CONFIG, POLL_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message payloads."""

    MAX_CONTENT_LENGTH: Final[int] = 5000  # Characters
    REPLY_SNIPPET_LENGTH: Final[int] = 120
    MAX_CLIENT_MESSAGE_ID_LENGTH: Final[int] = 64

    # Shown in place of the body once a message is tombstoned
    DELETED_PLACEHOLDER: Final[str] = "This message was deleted"


# =============================================================================
# Attachment Configuration
# =============================================================================


class ATTACHMENT_CONFIG:
    """
    Configuration for attachment descriptors.

    Attachments are opaque blobs stored elsewhere; only the descriptor
    {kind, url, name} is persisted.
    """

    MAX_URL_LENGTH: Final[int] = 2048
    MAX_NAME_LENGTH: Final[int] = 255

    # Client aliases accepted on input and normalized before storage
    KIND_ALIASES: Final[dict] = {"voice": "audio", "document": "file"}


# =============================================================================
# Poll Configuration
# =============================================================================


class POLL_CONFIG:
    """Configuration for polls attached to messages."""

    MIN_OPTIONS: Final[int] = 2
    MAX_OPTIONS: Final[int] = 10
    MAX_QUESTION_LENGTH: Final[int] = 300
    MAX_OPTION_LENGTH: Final[int] = 100


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # Handles compound emojis (skin tone, ZWJ sequences)
    MAX_EMOJI_LENGTH: Final[int] = 16

    # UI hints only, not restrictions
    QUICK_REACTIONS: Final[tuple] = ("👍", "❤️", "😂", "😮", "😢", "📚")


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence and typing signals."""

    # Seconds without a heartbeat before a connection is considered gone
    PRESENCE_TTL_SECONDS: Final[int] = 90

    # Typing flags expire client-side after this window
    TYPING_TTL_SECONDS: Final[int] = 3

    HEARTBEAT_INTERVAL_SECONDS: Final[int] = 30

    # Channel layer groups
    PRESENCE_GROUP: Final[str] = "presence"
    USER_GROUP_PREFIX: Final[str] = "user_"
    CONVERSATION_GROUP_PREFIX: Final[str] = "conversation_"

    # Redis sorted set holding user_id -> last seen timestamp
    REDIS_ONLINE_KEY: Final[str] = "chat:presence:online"
    REDIS_CONNECTIONS_KEY: Final[str] = "chat:presence:connections"


# =============================================================================
# Unread Configuration
# =============================================================================


class UNREAD_CONFIG:
    """Configuration for unread badges."""

    # Badge counts above this render as "99+"
    BADGE_CAP: Final[int] = 99


# =============================================================================
# WebSocket close codes
# =============================================================================


class CLOSE_CODES:
    """Application close codes sent by the chat consumer."""

    UNAUTHENTICATED: Final[int] = 4001
