"""
Chat application configuration.

This app provides the messaging core with:
- Club and direct conversations
- Ordered messages with attachments, replies, forwards, polls and reactions
- Pins, tombstones and per-user hiding
- Read markers and unread counts
- Presence and typing signals over WebSocket
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
