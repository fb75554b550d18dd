"""
Chat app for real-time messaging.

This app handles:
- Conversations (club and direct)
- Message sending, reactions, polls, pins and deletion
- Read markers and unread counts
- WebSocket presence and typing signals

Related apps:
    - authentication: User model for participants
    - chat_client: Client-side sync engine talking to this app's API

WebSocket Support:
    Uses Django Channels for real-time signals.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationGateway

    thread = ConversationGateway.get_or_create_direct(user, other_user.id).data

    result = ConversationGateway.send_message(
        user,
        thread.conversation.id,
        {"content": "Chapter 3 was wild"},
    )
"""
