"""
WebSocket consumer for chat signals.

The socket carries ephemeral hints only: presence, typing and read receipts.
Messages themselves go through the HTTP API so there is a single writer.

Consumers:
    ChatConsumer: One connection per client tab at ws/chat/

Authentication:
    Users are authenticated via JWT token passed as query parameter.
    JWTAuthMiddleware attaches the user to self.scope["user"]. Anonymous
    connections are closed with code 4001.

Channel Groups:
    presence            Every authenticated connection (presence:update)
    user_{id}           Every connection of one user (peer typing)
    conversation_{id}   Connections that joined a conversation

Message Types (from client):
    - join / leave {conversationId}
    - typing:start / typing:stop {conversationId?, to?}
    - heartbeat

Message Types (to client):
    - presence:update {onlineUserIds}
    - typing:start {from, conversationId, expiresIn}
    - typing:stop {from, conversationId}
    - read:update {userId, conversationId, lastReadAt}
    - error {code, message}
"""

from __future__ import annotations

import logging

from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from chat.authorization import ChatAuthorization
from chat.constants import CLOSE_CODES, PRESENCE_CONFIG
from chat.services.presence import PresenceHub
from chat.services.signals import conversation_group, typing_event, user_group

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for presence and typing signals.

    Attributes:
        user: Authenticated user (after connect)
        joined: Conversation ids this connection joined
        hub: PresenceHub used for registry changes and broadcasts
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.joined: set[int] = set()
        self.hub: PresenceHub | None = None
        self._registered = False

    async def connect(self):
        """
        Handle WebSocket connection.

        On success joins the presence and per-user groups, registers the
        connection and broadcasts the online set.
        """
        user = self.scope.get("user")
        if not user or isinstance(user, AnonymousUser) or not user.is_authenticated:
            logger.warning("Rejected unauthenticated chat connection")
            await self.close(code=CLOSE_CODES.UNAUTHENTICATED)
            return

        self.user = user
        self.hub = PresenceHub(channel_layer=self.channel_layer)
        await self.channel_layer.group_add(
            PRESENCE_CONFIG.PRESENCE_GROUP, self.channel_name
        )
        await self.channel_layer.group_add(user_group(user.id), self.channel_name)
        # Browsers drop the socket unless an offered subprotocol is echoed
        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)

        came_online = await sync_to_async(self.hub.connect)(user.id)
        self._registered = True
        logger.info(f"User {user.id} connected to chat signals")

        if came_online:
            await self.hub.broadcast()
        else:
            await self._send_presence(await self._online_user_ids())

    async def disconnect(self, close_code):
        """
        Handle WebSocket disconnection.

        Leaves every group and rebroadcasts presence when the user's last
        connection closed.
        """
        if self.user is None:
            return

        for conversation_id in list(self.joined):
            await self.channel_layer.group_discard(
                conversation_group(conversation_id), self.channel_name
            )
        self.joined.clear()
        await self.channel_layer.group_discard(
            user_group(self.user.id), self.channel_name
        )
        await self.channel_layer.group_discard(
            PRESENCE_CONFIG.PRESENCE_GROUP, self.channel_name
        )

        if self._registered:
            self._registered = False
            went_offline = await sync_to_async(self.hub.disconnect)(self.user.id)
            if went_offline:
                await self.hub.broadcast()
        logger.info(f"User {self.user.id} disconnected from chat signals ({close_code})")

    async def receive_json(self, content, **kwargs):
        """
        Handle incoming WebSocket events.

        Expected event format:
            {"type": "join", "conversationId": 12}
            {"type": "typing:start", "conversationId": 12}
            {"type": "typing:start", "to": 7}
            {"type": "heartbeat"}
        """
        if not isinstance(content, dict):
            await self._send_error("INVALID_EVENT", "Event must be a JSON object")
            return

        handlers = {
            "join": self._handle_join,
            "leave": self._handle_leave,
            "typing:start": self._handle_typing_start,
            "typing:stop": self._handle_typing_stop,
            "heartbeat": self._handle_heartbeat,
        }
        event_type = content.get("type")
        handler = handlers.get(event_type)
        if handler is None:
            await self._send_error(
                "UNKNOWN_EVENT", f"Unknown event type: {event_type}"
            )
            return
        await handler(content)

    # -------------------------------------------------------------------------
    # Client events
    # -------------------------------------------------------------------------

    async def _handle_join(self, content):
        conversation_id = self._int_or_none(content.get("conversationId"))
        if conversation_id is None:
            await self._send_error("VALIDATION_ERROR", "conversationId is required")
            return

        if not await self._is_member(conversation_id):
            await self._send_error(
                "NOT_MEMBER", "You are not a member of this conversation"
            )
            return

        await self.channel_layer.group_add(
            conversation_group(conversation_id), self.channel_name
        )
        self.joined.add(conversation_id)

    async def _handle_leave(self, content):
        conversation_id = self._int_or_none(content.get("conversationId"))
        if conversation_id is None or conversation_id not in self.joined:
            return
        await self.channel_layer.group_discard(
            conversation_group(conversation_id), self.channel_name
        )
        self.joined.discard(conversation_id)

    async def _handle_typing_start(self, content):
        await self._relay_typing(content, started=True)

    async def _handle_typing_stop(self, content):
        await self._relay_typing(content, started=False)

    async def _handle_heartbeat(self, content):
        # A user swept while the socket stayed open comes back online here
        if await sync_to_async(self.hub.heartbeat)(self.user.id):
            await self.hub.broadcast()

    async def _relay_typing(self, content, started: bool):
        """
        Relay a typing flag to a conversation or a single peer.

        ``conversationId`` addresses everyone who joined that conversation;
        ``to`` addresses all connections of one user that shares a
        conversation with the sender.
        """
        conversation_id = self._int_or_none(content.get("conversationId"))
        peer_id = self._int_or_none(content.get("to"))

        if peer_id is not None:
            if not await self._shares_conversation(peer_id):
                await self._send_error("NOT_MEMBER", "No shared conversation")
                return
            group = user_group(peer_id)
        elif conversation_id is not None:
            if conversation_id not in self.joined and not await self._is_member(
                conversation_id
            ):
                await self._send_error(
                    "NOT_MEMBER", "You are not a member of this conversation"
                )
                return
            group = conversation_group(conversation_id)
        else:
            await self._send_error(
                "VALIDATION_ERROR", "conversationId or to is required"
            )
            return

        await self.channel_layer.group_send(
            group,
            typing_event(started, self.user.id, conversation_id),
        )

    # -------------------------------------------------------------------------
    # Channel layer events
    # -------------------------------------------------------------------------

    async def presence_update(self, event):
        """Handle presence.update events from channel layer."""
        await self._send_presence(event["online_user_ids"])

    async def typing_start(self, event):
        """
        Handle typing.start events from channel layer.

        Not echoed to any of the sender's own connections.
        """
        if event["from_user_id"] == self.user.id:
            return
        await self.send_json(
            {
                "type": "typing:start",
                "from": event["from_user_id"],
                "conversationId": event["conversation_id"],
                "expiresIn": PRESENCE_CONFIG.TYPING_TTL_SECONDS,
            }
        )

    async def typing_stop(self, event):
        """Handle typing.stop events from channel layer."""
        if event["from_user_id"] == self.user.id:
            return
        await self.send_json(
            {
                "type": "typing:stop",
                "from": event["from_user_id"],
                "conversationId": event["conversation_id"],
            }
        )

    async def read_update(self, event):
        """Handle read.update events from channel layer."""
        await self.send_json(
            {
                "type": "read:update",
                "userId": event["user_id"],
                "conversationId": event["conversation_id"],
                "lastReadAt": event["last_read_at"],
            }
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _send_presence(self, online_user_ids):
        await self.send_json(
            {"type": "presence:update", "onlineUserIds": list(online_user_ids)}
        )

    async def _send_error(self, code: str, message: str):
        await self.send_json({"type": "error", "code": code, "message": message})

    async def _online_user_ids(self) -> list[int]:
        return await sync_to_async(self.hub.online_user_ids)()

    @staticmethod
    def _int_or_none(value) -> int | None:
        if isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @database_sync_to_async
    def _is_member(self, conversation_id: int) -> bool:
        return ChatAuthorization.is_member(self.user.id, conversation_id)

    @database_sync_to_async
    def _shares_conversation(self, peer_id: int) -> bool:
        return ChatAuthorization.shares_conversation(self.user.id, peer_id)
