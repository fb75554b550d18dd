"""
Client sync engine for one open conversation.

Keeps the locally displayed message list consistent with the server while
giving instant feedback on send:

1. submit() appends a pending_local entry immediately and sends in the
   background with the entry's temp id as client_message_id.
2. When the server answers, its snapshot replaces the authoritative list.
   Local entries whose temp id appears in the snapshot are dropped, so a
   message is never shown twice.
3. On failure the entry stays in the list as failed. retry() resends with
   the same temp id so the server can deduplicate; dismiss() removes it.

Push events from the WebSocket (presence, typing, read receipts) are merged
through apply_push() and never touch the message list.

Usage:
    async with GatewayClient(base_url, token) as client:
        engine = ConversationSyncEngine(client, conversation_id=12, user_id=4)
        engine.subscribe(render)
        await engine.load()
        engine.submit(Draft(content="Chapter 3 tonight?"))
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError

from .models import Draft, LocalMessage, SyncState
from .signals import TypingTracker

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from typing import Any

    from .transport import GatewayClient

logger = logging.getLogger(__name__)


def newest_sequence(messages: list[LocalMessage]) -> int:
    """Highest server sequence in a list of reconciled entries, 0 if none."""
    return max((m.data.get("sequence") or 0 for m in messages if m.data), default=0)


class ConversationSyncEngine:
    """
    Optimistic message list for a single conversation.

    Args:
        client: GatewayClient used for every request
        conversation_id: Conversation being displayed
        user_id: Current user, author of every local entry
        temp_id_factory: Produces temp ids (defaults to uuid4 hex)
        typing_tracker: Tracker for typing indicators
    """

    def __init__(
        self,
        client: GatewayClient,
        conversation_id: int,
        user_id: int,
        temp_id_factory: Callable[[], str] | None = None,
        typing_tracker: TypingTracker | None = None,
    ):
        self.client = client
        self.conversation_id = conversation_id
        self.user_id = user_id
        self._new_temp_id = temp_id_factory or (lambda: uuid.uuid4().hex)
        self.typing = typing_tracker or TypingTracker()

        self._server: list[LocalMessage] = []
        self._local: list[LocalMessage] = []
        self._online: tuple[int, ...] = ()
        self._read_markers: dict[int, str] = {}
        self._active_menu_id: int | str | None = None
        self._listeners: list[Callable[[SyncState], None]] = []
        self._tasks: set[asyncio.Task] = set()

        self.unread_count = 0
        self.first_unread_index: int | None = None

    # =========================================================================
    # State and subscriptions
    # =========================================================================

    @property
    def state(self) -> SyncState:
        return SyncState(
            messages=tuple(self._server) + tuple(self._local),
            online_user_ids=self._online,
            typing_user_ids=tuple(
                user_id
                for user_id in self.typing.active(self.conversation_id)
                if user_id != self.user_id
            ),
            read_markers=dict(self._read_markers),
            active_menu_id=self._active_menu_id,
        )

    def subscribe(self, listener: Callable[[SyncState], None]) -> Callable[[], None]:
        """
        Register a listener called with a fresh snapshot on every change.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # Loading and reconciliation
    # =========================================================================

    async def load(self) -> SyncState:
        """
        Fetch the message list and unread state from the server.

        The result replaces the list unconditionally unless a send is in
        flight, in which case it is treated like any other snapshot.
        """
        data = await self.client.list_messages(self.conversation_id)
        self.unread_count = data.get("unread_count", 0)
        self.first_unread_index = data.get("first_unread_index")
        self._reconcile(data["messages"], authoritative=not self._in_flight())
        return self.state

    def _reconcile(
        self, messages: list[dict[str, Any]], authoritative: bool = False
    ) -> None:
        """
        Merge a server snapshot into the displayed list.

        Local entries confirmed by the snapshot are dropped. Everything else
        still local (in flight or failed) stays after the server list.

        Responses to concurrent requests can arrive out of order. A snapshot
        whose newest sequence is below the one already displayed was taken
        before it and would hide messages the server has confirmed, so it
        only confirms local entries and never replaces the list.
        """
        incoming = [LocalMessage.from_server(data) for data in messages]
        confirmed = {m.temp_id for m in incoming if m.temp_id}
        self._local = [m for m in self._local if m.temp_id not in confirmed]

        if authoritative or newest_sequence(incoming) >= newest_sequence(self._server):
            self._server = incoming
        else:
            logger.debug(
                f"Ignoring stale snapshot for conversation {self.conversation_id}"
            )

        keys = {m.key for m in self._server} | {m.key for m in self._local}
        if self._active_menu_id is not None and str(self._active_menu_id) not in keys:
            self._active_menu_id = None
        self._notify()

    # =========================================================================
    # Sending
    # =========================================================================

    def submit(self, draft: Draft) -> str:
        """
        Show a draft as pending and send it in the background.

        Must be called while an event loop is running.

        Returns:
            The temp id identifying the local entry
        """
        temp_id = self._new_temp_id()
        entry = LocalMessage.pending(draft, temp_id, self.user_id)
        self._local.append(entry)
        self._notify()
        self._schedule(entry)
        return temp_id

    def retry(self, temp_id: str) -> None:
        """
        Resend a failed entry with its original temp id.

        Raises:
            NotFoundError: No local entry with this temp id
            ConflictError: Entry is not in the failed state
        """
        entry = self._find_local(temp_id)
        if not entry.is_failed:
            raise ConflictError("Message is not failed", error_code="NOT_FAILED")
        resent = entry.resent()
        self._replace_local(resent)
        self._notify()
        self._schedule(resent)

    def dismiss(self, temp_id: str) -> None:
        """
        Remove a failed entry from the list.

        Raises:
            NotFoundError: No local entry with this temp id
            ConflictError: Entry is still being sent
        """
        entry = self._find_local(temp_id)
        if not entry.is_failed:
            raise ConflictError("Message is still being sent", error_code="NOT_FAILED")
        self._local.remove(entry)
        self._notify()

    async def drain(self) -> None:
        """Wait for every in-flight send to settle."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    def _in_flight(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def _schedule(self, entry: LocalMessage) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(entry))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, entry: LocalMessage) -> None:
        payload = entry.draft.to_payload(entry.temp_id)
        try:
            messages = await self.client.send_message(self.conversation_id, payload)
        except BaseApplicationError as e:
            logger.warning(
                f"Send {entry.temp_id} to conversation {self.conversation_id} "
                f"failed: {e}"
            )
            if any(m.temp_id == entry.temp_id for m in self._local):
                self._replace_local(entry.failed(e))
                self._notify()
            return

        logger.debug(f"Send {entry.temp_id} reconciled")
        self._reconcile(messages)

    def _find_local(self, temp_id: str) -> LocalMessage:
        for entry in self._local:
            if entry.temp_id == temp_id:
                return entry
        raise NotFoundError("No local message with this id", error_code="NOT_FOUND")

    def _replace_local(self, entry: LocalMessage) -> None:
        self._local = [
            entry if m.temp_id == entry.temp_id else m for m in self._local
        ]

    # =========================================================================
    # Message actions
    # =========================================================================

    async def react(self, message_id: int, emoji: str) -> None:
        self._reconcile(await self.client.react(self.conversation_id, message_id, emoji))

    async def vote(self, message_id: int, option_index: int) -> None:
        self._reconcile(
            await self.client.vote(self.conversation_id, message_id, option_index)
        )

    async def toggle_pin(self, message_id: int, pinned: bool | None = None) -> None:
        self._reconcile(
            await self.client.pin(self.conversation_id, message_id, pinned)
        )

    async def delete(self, message_id: int, mode: str = "everyone") -> None:
        await self.client.delete_message(self.conversation_id, message_id, mode)
        if mode == "me":
            # Hidden messages leave the list; the reload must not look stale
            self._server = [m for m in self._server if m.id != message_id]
        await self.load()

    async def mark_read(self, at: datetime | None = None) -> None:
        data = await self.client.mark_read(self.conversation_id, at)
        self._read_markers[self.user_id] = data["last_read_at"]
        self.unread_count = 0
        self.first_unread_index = None
        self._notify()

    # =========================================================================
    # Context menu
    # =========================================================================

    def open_menu(self, key: int | str) -> None:
        """Open the action menu on one message, closing any other."""
        self._active_menu_id = key
        self._notify()

    def close_menu(self) -> None:
        if self._active_menu_id is not None:
            self._active_menu_id = None
            self._notify()

    # =========================================================================
    # Push events
    # =========================================================================

    def apply_push(self, event: dict[str, Any]) -> None:
        """
        Merge a WebSocket event into the local state.

        Handles presence:update, typing:start, typing:stop and read:update.
        Other event types are ignored.
        """
        event_type = event.get("type")

        if event_type == "presence:update":
            self._online = tuple(event.get("onlineUserIds", ()))
        elif event_type == "typing:start":
            if not self._concerns_us(event):
                return
            self.typing.start(
                self.conversation_id, event["from"], event.get("expiresIn")
            )
        elif event_type == "typing:stop":
            if not self._concerns_us(event):
                return
            self.typing.stop(self.conversation_id, event["from"])
        elif event_type == "read:update":
            if event.get("conversationId") != self.conversation_id:
                return
            self._read_markers[event["userId"]] = event["lastReadAt"]
        else:
            logger.debug(f"Ignoring push event {event_type!r}")
            return

        self._notify()

    def _concerns_us(self, event: dict[str, Any]) -> bool:
        # Peer typing arrives without a conversation id
        conversation_id = event.get("conversationId")
        return conversation_id is None or conversation_id == self.conversation_id
