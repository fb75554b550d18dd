"""
Conversation Gateway.

The only entry point from client intent to MessageStore mutation. Every
operation here:

1. Confirms the caller is an active member of the conversation (NOT_MEMBER)
2. Confirms the role for author-or-admin operations (FORBIDDEN)
3. Normalizes the payload once (attachments reduced to {kind, url, name},
   polls validated, reply and forward references resolved)
4. Delegates to MessageStore / ReadStateTracker
5. Returns a ServiceResult; raised core.exceptions become failures

Views never touch the store directly.

Usage:
    result = ConversationGateway.send_message(user, conversation_id, data)
    if result.success:
        messages = result.data
    else:
        Response(result.to_response(), status=result.status_code)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from chat.authorization import ChatAuthorization
from chat.models import (
    Conversation,
    ConversationKind,
    DirectConversationPair,
    Message,
    Participant,
    ParticipantRole,
)
from chat.services.payloads import build_payload, sanitize_attachment
from chat.services.read_state import ReadStateTracker
from chat.services.signals import broadcast_read_update
from chat.services.store import MessageStore
from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from authentication.models import User


class DeleteMode:
    """How a message is deleted."""

    EVERYONE = "everyone"
    ME = "me"

    choices = (EVERYONE, ME)


@dataclass
class MessageListing:
    """Messages of a conversation as seen by one reader."""

    messages: list[Message]
    unread_count: int
    first_unread_index: int | None


@dataclass
class DirectThread:
    """Result of a direct thread lookup."""

    conversation: Conversation
    created: bool


class ConversationGateway(BaseService):
    """
    Authorization and validation chokepoint for conversation operations.

    Error codes surfaced (see also MessageStore):
        NOT_MEMBER (403), FORBIDDEN (403), NOT_FOUND (404),
        VALIDATION_ERROR / EMPTY_MESSAGE / INVALID_POLL /
        INVALID_ATTACHMENT / NOT_A_POLL (422),
        INVALID_OPTION / MESSAGE_DELETED (409), SELF_DIRECT (422)
    """

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    @classmethod
    def get_or_create_direct(
        cls, user: User, other_user_id: int
    ) -> ServiceResult[DirectThread]:
        """
        Return the direct thread between ``user`` and another user.

        A thread is unique per unordered pair. When two requests race to
        create the same thread, the loser hits the pair constraint and
        returns the winner's thread, so both callers see one id.

        Error codes:
            SELF_DIRECT: Cannot open a thread with yourself
            NOT_FOUND: Other user does not exist or is inactive
        """
        if other_user_id == user.pk:
            return ServiceResult.failure(
                "Cannot start a direct conversation with yourself",
                error_code="SELF_DIRECT",
                status_code=422,
            )

        other = (
            get_user_model()
            .objects.filter(pk=other_user_id, is_active=True)
            .first()
        )
        if other is None:
            return ServiceResult.failure(
                "User not found", error_code="NOT_FOUND", status_code=404
            )

        lower_id, higher_id = DirectConversationPair.canonical(user.pk, other.pk)
        existing = cls._find_direct(lower_id, higher_id)
        if existing is not None:
            return ServiceResult.success(DirectThread(existing, created=False))

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    kind=ConversationKind.DIRECT,
                    created_by=user,
                )
                DirectConversationPair.objects.create(
                    conversation=conversation,
                    user_lower_id=lower_id,
                    user_higher_id=higher_id,
                )
                Participant.objects.bulk_create(
                    [
                        Participant(conversation=conversation, user_id=lower_id),
                        Participant(conversation=conversation, user_id=higher_id),
                    ]
                )
        except IntegrityError:
            existing = cls._find_direct(lower_id, higher_id)
            if existing is None:
                raise
            cls.get_logger().info(
                f"Direct thread race for ({lower_id}, {higher_id}); "
                f"returning conversation {existing.pk}"
            )
            return ServiceResult.success(DirectThread(existing, created=False))

        cls.get_logger().info(
            f"Created direct conversation {conversation.pk} "
            f"between users {lower_id} and {higher_id}"
        )
        return ServiceResult.success(DirectThread(conversation, created=True))

    @classmethod
    def create_club(
        cls,
        creator: User,
        title: str,
        member_ids: list[int] | None = None,
        admin_ids: list[int] | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Create a club conversation.

        The creator joins as admin. ``admin_ids`` are promoted to admin,
        other ``member_ids`` join as members. Unknown ids are ignored.
        """
        invalid = cls.validate_required(title=title)
        if invalid:
            return invalid

        admin_ids = set(admin_ids or [])
        member_ids = set(member_ids or []) | admin_ids
        member_ids.discard(creator.pk)
        existing_ids = set(
            get_user_model()
            .objects.filter(pk__in=member_ids, is_active=True)
            .values_list("pk", flat=True)
        )

        with cls.atomic():
            conversation = Conversation.objects.create(
                kind=ConversationKind.CLUB,
                title=title.strip(),
                created_by=creator,
            )
            participants = [
                Participant(
                    conversation=conversation,
                    user=creator,
                    role=ParticipantRole.ADMIN,
                )
            ]
            participants.extend(
                Participant(
                    conversation=conversation,
                    user_id=member_id,
                    role=(
                        ParticipantRole.ADMIN
                        if member_id in admin_ids
                        else ParticipantRole.MEMBER
                    ),
                )
                for member_id in sorted(existing_ids)
            )
            Participant.objects.bulk_create(participants)

        cls.get_logger().info(
            f"Created club conversation {conversation.pk} with "
            f"{len(participants)} members"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def list_conversations(cls, user: User) -> ServiceResult[list[Conversation]]:
        """
        Conversations the user is an active member of, newest activity first.

        Each conversation carries an ``unread_count`` attribute.
        """
        conversations = list(
            Conversation.objects.filter(
                participants__user=user,
                participants__left_at__isnull=True,
            )
            .prefetch_related("participants__user")
            .distinct()
            .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
        )
        for conversation in conversations:
            conversation.unread_count = ReadStateTracker.unread_count(
                user, conversation.pk
            )
        return ServiceResult.success(conversations)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @classmethod
    def get_messages(
        cls, user: User, conversation_id: int
    ) -> ServiceResult[MessageListing]:
        """
        Snapshot plus unread state for the caller.

        Reading does not move the marker; clients call mark_read when the
        conversation is actually displayed.
        """
        try:
            ChatAuthorization.require_member(user, conversation_id)
            listing = MessageListing(
                messages=MessageStore.snapshot(conversation_id, viewer=user),
                unread_count=ReadStateTracker.unread_count(user, conversation_id),
                first_unread_index=ReadStateTracker.first_unread_index(
                    user, conversation_id
                ),
            )
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "get_messages")
        return ServiceResult.success(listing)

    @classmethod
    def get_pinned(
        cls, user: User, conversation_id: int
    ) -> ServiceResult[list[Message]]:
        """Pinned messages in creation order."""
        try:
            ChatAuthorization.require_member(user, conversation_id)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "get_pinned")
        return ServiceResult.success(MessageStore.pinned(conversation_id, viewer=user))

    @classmethod
    def send_message(
        cls, user: User, conversation_id: int, data: dict[str, Any]
    ) -> ServiceResult[list[Message]]:
        """
        Validate and append a message, returning the full snapshot.

        ``data`` keys: content, attachment, poll, reply_to, forwarded_from,
        client_message_id. A forward with no content of its own copies the
        source body and attachment. The sender has implicitly read their own
        message, so their marker advances to its timestamp.
        """
        try:
            ChatAuthorization.require_member(user, conversation_id)
            payload = build_payload(data)

            if payload.forwarded_from_id is not None:
                source = cls._resolve_forward_source(user, payload.forwarded_from_id)
                payload.forwarded_from_author_name = source.author_name
                if not payload.body and payload.attachment is None:
                    payload.body = source.body
                    if source.has_attachment:
                        payload.attachment = sanitize_attachment(
                            source.get_attachment()
                        )

            message, snapshot = MessageStore.append(conversation_id, user, payload)
            ReadStateTracker.mark_read(user, conversation_id, at=message.created_at)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "send_message")
        return ServiceResult.success(snapshot)

    @classmethod
    def react(
        cls, user: User, conversation_id: int, message_id: int, emoji: str
    ) -> ServiceResult[list[Message]]:
        """Toggle the caller's ``emoji`` reaction on a message."""
        try:
            ChatAuthorization.require_member(user, conversation_id)
            emoji = (emoji or "").strip()
            if not emoji:
                raise ValidationError(
                    "Emoji is required",
                    details={"emoji": ["This field is required."]},
                )
            snapshot = MessageStore.react(conversation_id, message_id, user, emoji)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "react")
        return ServiceResult.success(snapshot)

    @classmethod
    def vote(
        cls, user: User, conversation_id: int, message_id: int, option_index: int
    ) -> ServiceResult[list[Message]]:
        """Cast the caller's exclusive vote on a poll."""
        try:
            ChatAuthorization.require_member(user, conversation_id)
            snapshot = MessageStore.vote(conversation_id, message_id, user, option_index)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "vote")
        return ServiceResult.success(snapshot)

    @classmethod
    def toggle_pin(
        cls,
        user: User,
        conversation_id: int,
        message_id: int,
        pinned: bool | None = None,
    ) -> ServiceResult[list[Message]]:
        """
        Pin or unpin a message (author or admin only).

        Args:
            pinned: Target state; None flips the current state
        """
        try:
            _, participant = ChatAuthorization.require_member(user, conversation_id)
            message = MessageStore.get_message(conversation_id, message_id)
            ChatAuthorization.require_moderator(participant, message)
            snapshot = MessageStore.set_pinned(
                conversation_id, message_id, pinned, viewer=user
            )
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "toggle_pin")
        return ServiceResult.success(snapshot)

    @classmethod
    def delete_message(
        cls,
        user: User,
        conversation_id: int,
        message_id: int,
        mode: str = DeleteMode.EVERYONE,
    ) -> ServiceResult[None]:
        """
        Delete a message.

        Modes:
            everyone: Tombstone for all (author or admin only)
            me: Hide from the caller's own snapshots (any member)
        """
        try:
            if mode not in DeleteMode.choices:
                raise ValidationError(
                    "Unknown delete mode",
                    details={"mode": [f"Must be one of: {', '.join(DeleteMode.choices)}."]},
                )
            _, participant = ChatAuthorization.require_member(user, conversation_id)
            message = MessageStore.get_message(conversation_id, message_id)

            if mode == DeleteMode.ME:
                MessageStore.hide_for(conversation_id, message_id, user)
            else:
                ChatAuthorization.require_moderator(participant, message)
                MessageStore.soft_delete(conversation_id, message_id, requested_by=user)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "delete_message")
        return ServiceResult.success(None)

    # -------------------------------------------------------------------------
    # Read state
    # -------------------------------------------------------------------------

    @classmethod
    def mark_read(
        cls, user: User, conversation_id: int, at: datetime | None = None
    ) -> ServiceResult[datetime]:
        """
        Mark the conversation read for the caller.

        Client-supplied instants are clamped to the server clock. Once
        committed, other members are told through the push channel so
        their read receipts refresh.
        """
        if at is not None:
            at = min(at, timezone.now())
        try:
            ChatAuthorization.require_member(user, conversation_id)
            marker = ReadStateTracker.mark_read(user, conversation_id, at=at)
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "mark_read")

        transaction.on_commit(
            lambda: broadcast_read_update(
                conversation_id, user.pk, marker.last_read_at
            )
        )
        return ServiceResult.success(marker.last_read_at)

    @classmethod
    def unread_summary(cls, user: User) -> ServiceResult[dict]:
        """Capped unread counts across the caller's conversations."""
        return ServiceResult.success(ReadStateTracker.unread_summary(user))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @classmethod
    def _find_direct(cls, lower_id: int, higher_id: int) -> Conversation | None:
        pair = (
            DirectConversationPair.objects.select_related("conversation")
            .filter(user_lower_id=lower_id, user_higher_id=higher_id)
            .first()
        )
        return pair.conversation if pair else None

    @classmethod
    def _resolve_forward_source(cls, user: User, message_id: int) -> Message:
        """
        Resolve a forwarded message the caller is allowed to read.

        Raises:
            NotFoundError: Unknown id, a tombstone, or a conversation the
                caller cannot read
        """
        source = Message.objects.filter(pk=message_id, is_deleted=False).first()
        if source is None or not ChatAuthorization.is_member(
            user.pk, source.conversation_id
        ):
            raise NotFoundError(
                "Forwarded message not found",
                error_code="NOT_FOUND",
                details={"forwarded_from": message_id},
            )
        return source
