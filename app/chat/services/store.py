"""
Message Store: the single writer of conversation history.

Every mutation of a conversation's messages goes through MessageStore and is
serialized per conversation:

    with transaction.atomic():
        conversation = Conversation.objects.select_for_update().get(pk=...)
        ... mutate ...
        snapshot = list(...)   # read inside the same transaction

Holding the Conversation row lock for the whole mutation means concurrent
append/react/vote/pin calls on one conversation apply one at a time and a
returned snapshot never reflects a half-applied change. Calls on different
conversations do not contend.

MessageStore does no membership or role checks; that is the gateway's job.
Failures are raised as core.exceptions subclasses:

    NOT_FOUND        Conversation or message id does not resolve (or the
                     message belongs to a different conversation)
    EMPTY_MESSAGE    Payload has no body, attachment or poll
    NOT_A_POLL       Vote on a message without a poll
    INVALID_OPTION   Vote index out of range
    MESSAGE_DELETED  React/vote/pin on a tombstone
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction

from chat.models import (
    Conversation,
    Message,
    MessageReaction,
    Poll,
    PollOption,
    PollVote,
)
from chat.services.payloads import build_snippet
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService

if TYPE_CHECKING:
    from authentication.models import User
    from chat.services.payloads import MessagePayload


class MessageStore(BaseService):
    """
    Persist messages, apply mutations, return ordered snapshots.

    Snapshots are lists of Message instances ordered by (created_at,
    sequence) with reactions and poll state prefetched, ready for
    MessageSerializer.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @classmethod
    def snapshot(
        cls, conversation_id: int, viewer: User | None = None
    ) -> list[Message]:
        """
        Full ordered message list of a conversation.

        Args:
            conversation_id: Conversation to read
            viewer: When given, messages hidden for this user are left out

        Returns:
            Messages ordered by (created_at, sequence), tombstones included
        """
        return list(
            Message.objects.filter(conversation_id=conversation_id)
            .visible_to(viewer)
            .with_details()
            .in_order()
        )

    @classmethod
    def pinned(
        cls, conversation_id: int, viewer: User | None = None
    ) -> list[Message]:
        """Pinned messages of a conversation in creation order."""
        return list(
            Message.objects.filter(conversation_id=conversation_id, is_pinned=True)
            .visible_to(viewer)
            .with_details()
            .in_order()
        )

    @classmethod
    def get_message(cls, conversation_id: int, message_id: int) -> Message:
        """
        Resolve a message id inside a conversation.

        Tombstones resolve too; they stay addressable for reply chains.

        Raises:
            NotFoundError: If the message does not exist in this conversation
        """
        message = (
            Message.objects.filter(pk=message_id, conversation_id=conversation_id)
            .select_related("poll")
            .first()
        )
        if message is None:
            raise NotFoundError(
                "Message not found",
                error_code="NOT_FOUND",
                details={"message_id": message_id},
            )
        return message

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @classmethod
    def append(
        cls,
        conversation_id: int,
        author: User,
        payload: MessagePayload,
    ) -> tuple[Message, list[Message]]:
        """
        Append a message to a conversation.

        The server assigns the timestamp and the next sequence number while
        the conversation is locked. If the author already stored a message
        with the same ``client_message_id`` in this conversation, that
        message is returned unchanged so a retried send never duplicates.

        Args:
            conversation_id: Target conversation
            author: Sending user
            payload: Normalized message content

        Returns:
            Tuple of (new or existing message, full snapshot for author)

        Raises:
            ValidationError: EMPTY_MESSAGE when there is nothing to store
            NotFoundError: Unknown conversation or reply target
        """
        if payload.is_empty:
            raise ValidationError(
                "Message must have content, an attachment or a poll",
                error_code="EMPTY_MESSAGE",
            )

        with transaction.atomic():
            conversation = cls._lock(conversation_id)

            if payload.client_message_id:
                existing = Message.objects.filter(
                    conversation=conversation,
                    author=author,
                    client_message_id=payload.client_message_id,
                ).first()
                if existing is not None:
                    cls.get_logger().info(
                        f"Duplicate send {payload.client_message_id} in conversation "
                        f"{conversation.pk}; returning message {existing.pk}"
                    )
                    return existing, cls.snapshot(conversation.pk, viewer=author)

            reply_to = None
            if payload.reply_to_id is not None:
                reply_to = cls.get_message(conversation.pk, payload.reply_to_id)

            conversation.last_sequence += 1
            attachment = payload.attachment
            message = Message.objects.create(
                conversation=conversation,
                sequence=conversation.last_sequence,
                author=author,
                author_name=author.get_display_name(),
                body=payload.body,
                attachment_kind=attachment.kind if attachment else "",
                attachment_url=attachment.url if attachment else "",
                attachment_name=attachment.name if attachment else "",
                reply_to=reply_to,
                reply_snippet=build_snippet(reply_to) if reply_to else "",
                reply_author_name=reply_to.author_name if reply_to else "",
                forwarded_from_id=payload.forwarded_from_id,
                forwarded_from_author_name=payload.forwarded_from_author_name,
                client_message_id=payload.client_message_id,
            )

            if payload.poll is not None:
                poll = Poll.objects.create(
                    message=message, question=payload.poll.question
                )
                PollOption.objects.bulk_create(
                    PollOption(poll=poll, position=position, text=text)
                    for position, text in enumerate(payload.poll.options)
                )

            conversation.last_message_at = message.created_at
            conversation.save(
                update_fields=["last_sequence", "last_message_at", "updated_at"]
            )
            snapshot = cls.snapshot(conversation.pk, viewer=author)

        cls.get_logger().info(
            f"Appended message {message.pk} (seq {message.sequence}) "
            f"to conversation {conversation.pk}"
        )
        return message, snapshot

    @classmethod
    def react(
        cls,
        conversation_id: int,
        message_id: int,
        user: User,
        emoji: str,
    ) -> list[Message]:
        """
        Toggle the (user, emoji) reaction on a message.

        Applying the same call twice restores the original reaction set.

        Raises:
            NotFoundError: Message not in this conversation
            ConflictError: MESSAGE_DELETED on a tombstone
        """
        with transaction.atomic():
            conversation = cls._lock(conversation_id)
            message = cls._get_live_message(conversation.pk, message_id)

            removed, _ = MessageReaction.objects.filter(
                message=message, user=user, emoji=emoji
            ).delete()
            if not removed:
                MessageReaction.objects.create(message=message, user=user, emoji=emoji)

            snapshot = cls.snapshot(conversation.pk, viewer=user)

        cls.get_logger().debug(
            f"User {user.pk} {'removed' if removed else 'added'} {emoji!r} "
            f"on message {message_id}"
        )
        return snapshot

    @classmethod
    def vote(
        cls,
        conversation_id: int,
        message_id: int,
        user: User,
        option_index: int,
    ) -> list[Message]:
        """
        Cast a poll vote, replacing any earlier vote by the same user.

        After vote(i) then vote(j) the user appears only in option j.

        Raises:
            NotFoundError: Message not in this conversation
            ConflictError: MESSAGE_DELETED on a tombstone, INVALID_OPTION
                when option_index is out of range
            ValidationError: NOT_A_POLL when the message has no poll
        """
        with transaction.atomic():
            conversation = cls._lock(conversation_id)
            message = cls._get_live_message(conversation.pk, message_id)

            if not message.has_poll:
                raise ValidationError(
                    "Message has no poll",
                    error_code="NOT_A_POLL",
                    details={"message_id": message_id},
                )

            poll = message.poll
            options = list(poll.options.order_by("position"))
            if not 0 <= option_index < len(options):
                raise ConflictError(
                    "Poll option does not exist",
                    error_code="INVALID_OPTION",
                    details={"option_index": option_index, "option_count": len(options)},
                )

            PollVote.objects.filter(poll=poll, user=user).delete()
            PollVote.objects.create(poll=poll, option=options[option_index], user=user)

            snapshot = cls.snapshot(conversation.pk, viewer=user)

        cls.get_logger().debug(
            f"User {user.pk} voted option {option_index} on poll {poll.pk}"
        )
        return snapshot

    @classmethod
    def set_pinned(
        cls,
        conversation_id: int,
        message_id: int,
        pinned: bool | None = None,
        viewer: User | None = None,
    ) -> list[Message]:
        """
        Set the pin flag of a message.

        Any number of messages may be pinned at once. With pinned=None the
        current flag is flipped, read under the conversation lock so
        concurrent toggles apply one after the other.

        Raises:
            NotFoundError: Message not in this conversation
            ConflictError: MESSAGE_DELETED on a tombstone
        """
        with transaction.atomic():
            conversation = cls._lock(conversation_id)
            message = cls._get_live_message(conversation.pk, message_id)
            if pinned is None:
                pinned = not message.is_pinned

            if message.is_pinned != pinned:
                message.is_pinned = pinned
                message.save(update_fields=["is_pinned", "updated_at"])

            snapshot = cls.snapshot(conversation.pk, viewer=viewer)

        cls.get_logger().info(
            f"Message {message_id} {'pinned' if pinned else 'unpinned'} "
            f"in conversation {conversation_id}"
        )
        return snapshot

    @classmethod
    def soft_delete(
        cls,
        conversation_id: int,
        message_id: int,
        requested_by: User | None = None,
    ) -> Message:
        """
        Tombstone a message.

        Clears body, attachment and pin, drops reactions and the poll, and
        keeps the id and reply edges. Deleting a tombstone again is a no-op.

        Args:
            conversation_id: Owning conversation
            message_id: Message to tombstone
            requested_by: Caller, for the audit log only

        Raises:
            NotFoundError: Message not in this conversation
        """
        with transaction.atomic():
            conversation = cls._lock(conversation_id)
            message = cls.get_message(conversation.pk, message_id)

            if message.is_deleted:
                return message

            message.soft_delete()
            MessageReaction.objects.filter(message=message).delete()
            Poll.objects.filter(message=message).delete()

        cls.get_logger().info(
            f"Message {message_id} in conversation {conversation_id} deleted by "
            f"{getattr(requested_by, 'pk', None)}"
        )
        return message

    @classmethod
    def hide_for(cls, conversation_id: int, message_id: int, user: User) -> None:
        """
        Hide a message from one user's snapshots ("delete for me").

        Other participants are unaffected. Hiding twice is a no-op.
        """
        message = cls.get_message(conversation_id, message_id)
        message.hidden_for.add(user)
        cls.get_logger().debug(f"Message {message_id} hidden for user {user.pk}")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @classmethod
    def _lock(cls, conversation_id: int) -> Conversation:
        """Lock and return the conversation row. Must run inside atomic()."""
        try:
            return Conversation.objects.select_for_update().get(pk=conversation_id)
        except Conversation.DoesNotExist:
            raise NotFoundError(
                "Conversation not found",
                error_code="NOT_FOUND",
                details={"conversation_id": conversation_id},
            ) from None

    @classmethod
    def _get_live_message(cls, conversation_id: int, message_id: int) -> Message:
        message = cls.get_message(conversation_id, message_id)
        if message.is_deleted:
            raise ConflictError(
                "Message was deleted",
                error_code="MESSAGE_DELETED",
                details={"message_id": message_id},
            )
        return message
