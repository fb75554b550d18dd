"""
Client-side message types.

Value objects:
    SendState: Lifecycle of an outbound message
    Draft: Content staged by a Composer, ready to send
    Composer: Mutable builder for a Draft (the "composing" state)
    LocalMessage: One row of the locally displayed list, either a server
        message or a pending/failed local placeholder
    SyncState: Immutable snapshot handed to subscribers

Lifecycle of an outbound message:
    composing → pending_local → (reconciled | failed)

A failed message can go back to pending_local through retry (same temp id)
or leave the list through dismiss. Pending and failed entries are never
part of the server's authoritative list.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from core.exceptions import ValidationError

if TYPE_CHECKING:
    from typing import Any

    from core.exceptions import BaseApplicationError


class SendState(str, Enum):
    """Lifecycle state of a message in the local list."""

    PENDING_LOCAL = "pending_local"
    RECONCILED = "reconciled"
    FAILED = "failed"


@dataclass(frozen=True)
class Draft:
    """
    Content of a message about to be sent.

    Attributes:
        content: Text body
        attachment: Descriptor {kind, url, name}
        poll: {question, options}
        reply_to: Id of the message being replied to
        forwarded_from: Id of the message being forwarded
    """

    content: str = ""
    attachment: dict[str, str] | None = None
    poll: dict[str, Any] | None = None
    reply_to: int | None = None
    forwarded_from: int | None = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.content.strip()
            and self.attachment is None
            and self.poll is None
            and self.forwarded_from is None
        )

    def to_payload(self, client_message_id: str) -> dict[str, Any]:
        """Request body for POST .../messages/."""
        payload: dict[str, Any] = {"client_message_id": client_message_id}
        if self.content:
            payload["content"] = self.content
        if self.attachment is not None:
            payload["attachment"] = dict(self.attachment)
        if self.poll is not None:
            payload["poll"] = dict(self.poll)
        if self.reply_to is not None:
            payload["reply_to"] = self.reply_to
        if self.forwarded_from is not None:
            payload["forwarded_from"] = self.forwarded_from
        return payload


class Composer:
    """
    Stages a message before it is submitted.

    Usage:
        composer = Composer()
        composer.set_text("See you Thursday")
        composer.reply_to(41)
        engine.submit(composer.build())
    """

    def __init__(self):
        self.clear()

    def clear(self) -> None:
        self._content = ""
        self._attachment: dict[str, str] | None = None
        self._poll: dict[str, Any] | None = None
        self._reply_to: int | None = None
        self._forwarded_from: int | None = None

    def set_text(self, content: str) -> Composer:
        self._content = content
        return self

    def attach(self, kind: str, url: str, name: str = "") -> Composer:
        self._attachment = {"kind": kind, "url": url, "name": name}
        return self

    def attach_poll(self, question: str, options: list[str]) -> Composer:
        self._poll = {"question": question, "options": list(options)}
        return self

    def reply_to(self, message_id: int | None) -> Composer:
        self._reply_to = message_id
        return self

    def forward(self, message_id: int | None) -> Composer:
        self._forwarded_from = message_id
        return self

    def build(self) -> Draft:
        """
        Freeze the staged content and reset the composer.

        Raises:
            ValidationError: EMPTY_MESSAGE when nothing was staged
        """
        draft = Draft(
            content=self._content,
            attachment=self._attachment,
            poll=self._poll,
            reply_to=self._reply_to,
            forwarded_from=self._forwarded_from,
        )
        if draft.is_empty:
            raise ValidationError(
                "Message must have content, an attachment or a poll",
                error_code="EMPTY_MESSAGE",
            )
        self.clear()
        return draft


@dataclass(frozen=True)
class LocalMessage:
    """
    A row of the locally displayed conversation.

    Server rows carry ``id`` and the raw server payload in ``data``. Local
    placeholders carry ``temp_id`` and the draft they were built from.
    """

    id: int | None
    temp_id: str | None
    author_id: int | None
    content: str
    state: SendState
    data: dict[str, Any] = field(default_factory=dict)
    draft: Draft | None = None
    error: BaseApplicationError | None = None

    @property
    def is_pending(self) -> bool:
        return self.state == SendState.PENDING_LOCAL

    @property
    def is_failed(self) -> bool:
        return self.state == SendState.FAILED

    @property
    def retryable(self) -> bool:
        return self.is_failed and self.error is not None and self.error.retryable

    @property
    def key(self) -> str:
        """Stable identity for rendering: server id or temp id."""
        return str(self.id) if self.id is not None else f"tmp:{self.temp_id}"

    @classmethod
    def from_server(cls, data: dict[str, Any]) -> LocalMessage:
        author = data.get("author") or {}
        return cls(
            id=data["id"],
            temp_id=data.get("client_message_id"),
            author_id=author.get("id"),
            content=data.get("content", ""),
            state=SendState.RECONCILED,
            data=data,
        )

    @classmethod
    def pending(cls, draft: Draft, temp_id: str, author_id: int) -> LocalMessage:
        return cls(
            id=None,
            temp_id=temp_id,
            author_id=author_id,
            content=draft.content,
            state=SendState.PENDING_LOCAL,
            draft=draft,
        )

    def failed(self, error: BaseApplicationError) -> LocalMessage:
        return replace(self, state=SendState.FAILED, error=error)

    def resent(self) -> LocalMessage:
        return replace(self, state=SendState.PENDING_LOCAL, error=None)


@dataclass(frozen=True)
class SyncState:
    """What a conversation view renders."""

    messages: tuple[LocalMessage, ...] = ()
    online_user_ids: tuple[int, ...] = ()
    typing_user_ids: tuple[int, ...] = ()
    read_markers: dict[int, str] = field(default_factory=dict)
    active_menu_id: int | str | None = None
