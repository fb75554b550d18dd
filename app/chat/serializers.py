"""
Serializers for chat API.

Serializer Hierarchy:
    MessageSerializer: Canonical wire shape of a message (read only)
    ConversationSerializer: Conversation with participants and unread count
    ParticipantSerializer: Member reference with role

    MessageCreateSerializer: Send a message (type checks only)
    ReactionSerializer / VoteSerializer / PinSerializer: Mutation inputs
    DirectConversationCreateSerializer / ClubCreateSerializer: Conversation inputs
    MarkReadSerializer: Optional read instant

Design Decisions:
    - Input serializers only check types. Domain validation (empty message,
      poll shape, attachment kinds) belongs to ConversationGateway so HTTP and
      any other entry point share one rule set.
    - Authors are always rendered as a single reference shape
      {"id", "display_name"} taken from the denormalized columns.
    - Tombstones keep their id, author and reply reference but render with
      empty content, no attachment, no poll and no reactions.
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG
from chat.models import Conversation, Message, Participant


# =============================================================================
# Read Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Canonical message representation returned in every snapshot.

    Expects the queryset to come from MessageStore (reactions and poll
    state prefetched).
    """

    author = serializers.SerializerMethodField(
        help_text="Author reference {id, display_name}"
    )
    content = serializers.CharField(source="body", read_only=True)
    attachment = serializers.SerializerMethodField(
        help_text="Attachment descriptor {kind, url, name} or null"
    )
    reply_to = serializers.SerializerMethodField(
        help_text="Reply reference {id, snippet, author_name} or null"
    )
    forwarded_from = serializers.SerializerMethodField(
        help_text="Forward source {message_id, author_name} or null"
    )
    poll = serializers.SerializerMethodField(help_text="Poll state or null")
    reactions = serializers.SerializerMethodField(
        help_text="Reactions grouped by emoji"
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sequence",
            "author",
            "content",
            "attachment",
            "reply_to",
            "forwarded_from",
            "poll",
            "reactions",
            "is_pinned",
            "is_deleted",
            "client_message_id",
            "created_at",
        ]
        read_only_fields = fields

    def get_author(self, obj: Message) -> dict:
        return {"id": obj.author_id, "display_name": obj.author_name}

    def get_attachment(self, obj: Message) -> dict | None:
        return obj.get_attachment()

    def get_reply_to(self, obj: Message) -> dict | None:
        if obj.reply_to_id is None:
            return None
        return {
            "id": obj.reply_to_id,
            "snippet": obj.reply_snippet,
            "author_name": obj.reply_author_name,
        }

    def get_forwarded_from(self, obj: Message) -> dict | None:
        if not obj.forwarded_from_author_name and obj.forwarded_from_id is None:
            return None
        return {
            "message_id": obj.forwarded_from_id,
            "author_name": obj.forwarded_from_author_name,
        }

    def get_poll(self, obj: Message) -> dict | None:
        if obj.is_deleted or not obj.has_poll:
            return None
        options = []
        total = 0
        for option in obj.poll.options.all():
            voter_ids = [vote.user_id for vote in option.votes.all()]
            total += len(voter_ids)
            options.append(
                {
                    "index": option.position,
                    "text": option.text,
                    "voter_ids": voter_ids,
                    "votes": len(voter_ids),
                }
            )
        return {
            "question": obj.poll.question,
            "options": options,
            "total_votes": total,
        }

    def get_reactions(self, obj: Message) -> list[dict]:
        grouped: dict[str, list[int]] = {}
        for reaction in obj.reactions.all():
            grouped.setdefault(reaction.emoji, []).append(reaction.user_id)
        return [
            {"emoji": emoji, "user_ids": user_ids, "count": len(user_ids)}
            for emoji, user_ids in grouped.items()
        ]


class ParticipantSerializer(serializers.ModelSerializer):
    """Member of a conversation."""

    user_id = serializers.IntegerField(read_only=True)
    display_name = serializers.CharField(
        source="user.get_display_name", read_only=True
    )

    class Meta:
        model = Participant
        fields = ["user_id", "display_name", "role", "joined_at"]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation summary for inbox lists and creation responses.

    ``unread_count`` is filled when the gateway annotated it (list view) and
    is null otherwise.
    """

    participants = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "kind",
            "title",
            "participants",
            "last_sequence",
            "last_message_at",
            "unread_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Conversation) -> list[dict]:
        return ParticipantSerializer(obj.get_active_participants(), many=True).data

    def get_unread_count(self, obj: Conversation) -> int | None:
        return getattr(obj, "unread_count", None)


# =============================================================================
# Write Serializers
# =============================================================================


class MessageCreateSerializer(serializers.Serializer):
    """
    Payload for sending a message.

    All fields are optional here; the gateway rejects a payload that carries
    none of content, attachment or poll.
    """

    content = serializers.CharField(
        required=False,
        allow_blank=True,
        trim_whitespace=False,
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        help_text="Message text",
    )
    attachment = serializers.DictField(
        required=False,
        allow_null=True,
        help_text="Attachment descriptor {kind, url, name}; other keys are dropped",
    )
    poll = serializers.DictField(
        required=False,
        allow_null=True,
        help_text="Poll definition {question, options: [str]}",
    )
    reply_to = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Id of the message being replied to",
    )
    forwarded_from = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Id of the message being forwarded",
    )
    client_message_id = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        max_length=MESSAGE_CONFIG.MAX_CLIENT_MESSAGE_ID_LENGTH,
        help_text="Client temporary id; retries with the same id are deduplicated",
    )


class ReactionSerializer(serializers.Serializer):
    """Toggle a reaction."""

    emoji = serializers.CharField(max_length=REACTION_CONFIG.MAX_EMOJI_LENGTH)


class VoteSerializer(serializers.Serializer):
    """Vote on a poll option by zero-based index."""

    option_index = serializers.IntegerField()


class PinSerializer(serializers.Serializer):
    """Set the pin flag; omit ``pinned`` to toggle."""

    pinned = serializers.BooleanField(required=False, allow_null=True, default=None)


class MarkReadSerializer(serializers.Serializer):
    """Mark read, optionally up to a given instant (default: now)."""

    at = serializers.DateTimeField(required=False, allow_null=True, default=None)


class DirectConversationCreateSerializer(serializers.Serializer):
    """Open (or reopen) the direct thread with another user."""

    user_id = serializers.IntegerField()


class ClubCreateSerializer(serializers.Serializer):
    """Create a club conversation."""

    title = serializers.CharField(max_length=100)
    member_ids = serializers.ListField(
        child=serializers.IntegerField(), required=False, default=list
    )
    admin_ids = serializers.ListField(
        child=serializers.IntegerField(), required=False, default=list
    )
