"""
Chat system models.

This module defines the persisted side of the messaging core:
- Club conversations (many members, member/admin roles)
- Direct threads between exactly two users
- Messages with attachments, replies, forwards, polls, reactions and pins
- Per-user read markers

Models:
    Conversation: Container for messages, owner of the per-conversation sequence
    DirectConversationPair: Enforces one direct thread per unordered user pair
    Participant: User membership in a conversation with role
    Message: A single message (tombstoned rather than removed)
    MessageReaction: (message, user, emoji) triple
    Poll / PollOption / PollVote: Poll owned by a message, exclusive votes
    ReadMarker: Last-read instant per (user, conversation)

Design Decisions:
    - Messages are ordered by (created_at, sequence). ``sequence`` is assigned
      while the Conversation row is locked, which gives a total order even
      when two messages share a timestamp.
    - Messages are immutable apart from reactions, pin flag, poll votes,
      tombstone and per-user hide.
    - Author name, reply snippet and forward source name are denormalized at
      send time so a snapshot never needs to join back to users.
    - Presence and typing are never stored here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.models import BaseModel
from core.model_mixins import SoftDeleteMixin

if TYPE_CHECKING:
    from authentication.models import User


class ConversationKind(models.TextChoices):
    """
    Kind of conversation.

    CLUB: Book club group chat, many participants, member/admin roles
    DIRECT: Exactly two participants, no roles
    """

    CLUB = "club", "Club"
    DIRECT = "direct", "Direct Message"


class ParticipantRole(models.TextChoices):
    """
    Role within a club conversation.

    ADMIN: May pin and delete any message
    MEMBER: May pin and delete own messages

    Note: Direct participants have no role (NULL).
    """

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class AttachmentKind(models.TextChoices):
    """Kind of attachment descriptor stored on a message."""

    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    FILE = "file", "File"
    LOCATION = "location", "Location"


class Conversation(BaseModel):
    """
    A club chat or a direct thread.

    The Conversation row doubles as the per-conversation mutation lock:
    every store mutation selects it FOR UPDATE before touching messages.

    Fields:
        kind: Club or direct
        title: Club title (empty for direct threads)
        created_by: User who created the conversation
        last_sequence: Last insertion sequence handed out
        last_message_at: Timestamp of the newest message (inbox sorting)

    Relationships:
        participants: Participant records
        messages: Message records
        direct_pair: DirectConversationPair if kind is DIRECT
        read_markers: ReadMarker records
    """

    kind = models.CharField(
        max_length=10,
        choices=ConversationKind.choices,
        default=ConversationKind.CLUB,
        db_index=True,
        help_text="Kind of conversation (club or direct)",
    )

    title = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Title for club conversations (empty for direct)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_sequence = models.PositiveBigIntegerField(
        default=0,
        help_text="Last message sequence number assigned in this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["kind", "-last_message_at"],
                name="chat_conv_kind_last_msg_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.is_direct:
            return f"Direct({self.pk})"
        if self.title:
            return f"Club: {self.title}"
        return f"Club({self.pk})"

    @property
    def is_direct(self) -> bool:
        return self.kind == ConversationKind.DIRECT

    @property
    def is_club(self) -> bool:
        return self.kind == ConversationKind.CLUB

    def get_active_participants(self):
        """Queryset of participants that have not left."""
        return self.participants.filter(left_at__isnull=True)

    def get_active_participant_for_user(self, user: User | int) -> Participant | None:
        """
        Get the active participant record for a user.

        Args:
            user: User instance or user id

        Returns:
            Participant if the user is an active member, None otherwise
        """
        user_id = getattr(user, "pk", user)
        return self.participants.filter(user_id=user_id, left_at__isnull=True).first()


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct threads between two users.

    Stores the pair in canonical order (lower user id first) so that the
    unique constraint holds no matter who opens the thread. A concurrent
    second creation fails on the constraint; the gateway then returns the
    thread that won.

    Constraints:
        - UniqueConstraint(user_lower, user_higher)
        - CheckConstraint(user_lower_id < user_higher_id)
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the pair ordered (lower, higher)."""
        return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class Participant(BaseModel):
    """
    Membership of a user in a conversation.

    Club membership itself is administered elsewhere; these rows mirror it
    so the gateway can check membership and role locally.

    Fields:
        conversation: Conversation this membership belongs to
        user: Member
        role: Club role (NULL for direct threads)
        joined_at: When the user joined
        left_at: When the user left (NULL while active)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        null=True,
        blank=True,
        help_text="Role in club conversation (null for direct threads)",
    )

    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined this conversation",
    )

    left_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the user left (null if still active)",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at"]
        indexes = [
            models.Index(
                fields=["user", "left_at"],
                name="chat_part_user_active_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                condition=Q(left_at__isnull=True),
                name="unique_active_participation",
            ),
        ]

    def __str__(self) -> str:
        role_str = f" ({self.role})" if self.role else ""
        return f"Participant: {self.user_id} in {self.conversation_id}{role_str}"

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN


class MessageQuerySet(models.QuerySet):
    """QuerySet helpers for conversation snapshots."""

    def in_order(self):
        """Order by (created_at, sequence), the conversation's total order."""
        return self.order_by("created_at", "sequence")

    def visible_to(self, user: User | int | None):
        """Exclude messages the user has hidden for themselves."""
        if user is None:
            return self
        user_id = getattr(user, "pk", user)
        return self.exclude(hidden_for__id=user_id)

    def with_details(self):
        """Prefetch everything a serialized snapshot needs."""
        return self.select_related("author", "poll").prefetch_related(
            "reactions",
            "poll__options__votes",
        )


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Tombstones:
        soft_delete() clears body, attachment and pin but keeps the row, its
        id and its reply edges. Replies pointing at a tombstone still render
        their denormalized snippet.

    Fields:
        conversation: Owning conversation (exclusive)
        sequence: Insertion number within the conversation
        author: Sender (NULL if the account was removed)
        author_name: Sender display name at send time
        body: Text (may be empty when attachment or poll is present)
        attachment_kind / attachment_url / attachment_name: Attachment descriptor
        reply_to: Message being replied to
        reply_snippet / reply_author_name: Denormalized reply preview
        forwarded_from: Source message of a forward
        forwarded_from_author_name: Original author of a forward
        is_pinned: Pin flag (many messages may be pinned at once)
        client_message_id: Sender's temporary id, the idempotency key for retries
        hidden_for: Users who deleted the message for themselves only
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sequence = models.PositiveBigIntegerField(
        help_text="Insertion sequence within the conversation (tie-breaker for ordering)",
    )

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="chat_messages",
        help_text="User who sent this message",
    )

    author_name = models.CharField(
        max_length=80,
        blank=True,
        default="",
        help_text="Author display name captured at send time",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Message text (cleared when tombstoned)",
    )

    attachment_kind = models.CharField(
        max_length=10,
        choices=AttachmentKind.choices,
        blank=True,
        default="",
        help_text="Attachment kind (empty when no attachment)",
    )

    attachment_url = models.CharField(
        max_length=2048,
        blank=True,
        default="",
        help_text="Opaque URL of the attachment blob",
    )

    attachment_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Display name of the attachment",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to",
    )

    reply_snippet = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Preview of the replied-to message captured at send time",
    )

    reply_author_name = models.CharField(
        max_length=80,
        blank=True,
        default="",
        help_text="Author name of the replied-to message",
    )

    forwarded_from = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="forwards",
        help_text="Source message when this is a forward",
    )

    forwarded_from_author_name = models.CharField(
        max_length=80,
        blank=True,
        default="",
        help_text="Original author name of a forwarded message",
    )

    is_pinned = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the message is pinned in its conversation",
    )

    client_message_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Sender-generated temporary id; a retry with the same id is deduplicated",
    )

    hidden_for = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_chat_messages",
        db_table="chat_message_hidden_for",
        help_text="Users who deleted this message for themselves",
    )

    objects = MessageQuerySet.as_manager()

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "sequence"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "sequence"],
                name="chat_msg_conv_order_idx",
            ),
            models.Index(
                fields=["conversation", "is_pinned"],
                name="chat_msg_conv_pinned_idx",
                condition=Q(is_pinned=True),
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "sequence"],
                name="unique_message_sequence",
            ),
            models.UniqueConstraint(
                fields=["conversation", "author", "client_message_id"],
                condition=Q(client_message_id__isnull=False),
                name="unique_client_message_id",
            ),
        ]

    def __str__(self) -> str:
        preview = self.body[:50] + "..." if len(self.body) > 50 else self.body
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"#{self.sequence} {self.author_name}: {preview}{deleted_str}"

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment_kind)

    @property
    def has_poll(self) -> bool:
        try:
            return self.poll is not None
        except Poll.DoesNotExist:
            return False

    def get_attachment(self) -> dict | None:
        """Attachment descriptor as {kind, url, name}, or None."""
        if not self.has_attachment:
            return None
        return {
            "kind": self.attachment_kind,
            "url": self.attachment_url,
            "name": self.attachment_name,
        }

    def clear_for_tombstone(self) -> list[str]:
        self.body = ""
        self.attachment_kind = ""
        self.attachment_url = ""
        self.attachment_name = ""
        self.is_pinned = False
        return [
            "body",
            "attachment_kind",
            "attachment_url",
            "attachment_name",
            "is_pinned",
        ]


class MessageReaction(BaseModel):
    """
    A (message, user, emoji) reaction triple.

    A user may hold several reactions with distinct emojis on one message,
    but at most one per emoji.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
        help_text="Message being reacted to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_reactions",
        help_text="User who reacted",
    )

    emoji = models.CharField(
        max_length=16,
        help_text="Emoji character(s)",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_user_emoji_reaction",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.emoji} by {self.user_id} on {self.message_id}"


class Poll(BaseModel):
    """
    A poll owned by exactly one message.

    Removed together with its options and votes when the owning message is
    tombstoned.
    """

    message = models.OneToOneField(
        Message,
        on_delete=models.CASCADE,
        related_name="poll",
        help_text="Message that carries this poll",
    )

    question = models.CharField(
        max_length=300,
        help_text="Poll question",
    )

    class Meta:
        db_table = "chat_poll"

    def __str__(self) -> str:
        return f"Poll: {self.question[:50]}"


class PollOption(models.Model):
    """An option of a poll, addressed by its zero-based position."""

    poll = models.ForeignKey(
        Poll,
        on_delete=models.CASCADE,
        related_name="options",
        help_text="Poll this option belongs to",
    )

    position = models.PositiveSmallIntegerField(
        help_text="Zero-based index of the option",
    )

    text = models.CharField(
        max_length=100,
        help_text="Option label",
    )

    class Meta:
        db_table = "chat_poll_option"
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(
                fields=["poll", "position"],
                name="unique_poll_option_position",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.position}: {self.text}"


class PollVote(BaseModel):
    """
    A user's vote on a poll.

    The (poll, user) constraint makes a vote exclusive across options.
    """

    poll = models.ForeignKey(
        Poll,
        on_delete=models.CASCADE,
        related_name="votes",
        help_text="Poll voted on",
    )

    option = models.ForeignKey(
        PollOption,
        on_delete=models.CASCADE,
        related_name="votes",
        help_text="Chosen option",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_poll_votes",
        help_text="Voter",
    )

    class Meta:
        db_table = "chat_poll_vote"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["poll", "user"],
                name="unique_poll_vote_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"Vote by {self.user_id} for option {self.option_id}"


class ReadMarker(BaseModel):
    """
    Last-read instant of a user in a conversation.

    Created on the first mark, then only ever moved forward.

    Fields:
        user: Reader
        conversation: Conversation read
        last_read_at: Everything by others at or before this instant is read
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_read_markers",
        help_text="User this marker belongs to",
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="read_markers",
        help_text="Conversation this marker belongs to",
    )

    last_read_at = models.DateTimeField(
        help_text="Instant up to which the user has read the conversation",
    )

    class Meta:
        db_table = "chat_read_marker"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "conversation"],
                name="unique_read_marker",
            ),
        ]

    def __str__(self) -> str:
        return f"ReadMarker({self.user_id}, {self.conversation_id}) @ {self.last_read_at}"
