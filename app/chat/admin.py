"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management
- Participant viewing
- Message moderation (read only content, pin and tombstone flags)
"""

from django.contrib import admin

from chat.models import (
    Conversation,
    DirectConversationPair,
    Message,
    Participant,
    Poll,
    PollOption,
    ReadMarker,
)


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["joined_at", "left_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "kind",
        "title",
        "last_sequence",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["kind", "created_at"]
    search_fields = ["title", "id"]
    readonly_fields = ["created_at", "updated_at", "last_sequence", "last_message_at"]
    raw_id_fields = ["created_by"]
    inlines = [ParticipantInline]
    ordering = ["-created_at"]


@admin.register(DirectConversationPair)
class DirectConversationPairAdmin(admin.ModelAdmin):
    """Admin interface for DirectConversationPair model."""

    list_display = ["conversation", "user_lower", "user_higher"]
    raw_id_fields = ["conversation", "user_lower", "user_higher"]


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    """Admin interface for Participant model."""

    list_display = ["id", "conversation", "user", "role", "joined_at", "left_at"]
    list_filter = ["role", "joined_at"]
    search_fields = ["user__email", "conversation__title"]
    readonly_fields = ["created_at", "updated_at", "joined_at"]
    raw_id_fields = ["conversation", "user"]
    ordering = ["-joined_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sequence",
        "author_name",
        "content_preview",
        "attachment_kind",
        "is_pinned",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["attachment_kind", "is_pinned", "is_deleted", "created_at"]
    search_fields = ["body", "author__email", "author_name"]
    readonly_fields = [
        "sequence",
        "client_message_id",
        "created_at",
        "updated_at",
        "deleted_at",
    ]
    raw_id_fields = ["conversation", "author", "reply_to", "forwarded_from"]
    filter_horizontal = ["hidden_for"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated body for list display."""
        max_length = 50
        if len(obj.body) > max_length:
            return obj.body[:max_length] + "..."
        return obj.body


class PollOptionInline(admin.TabularInline):
    model = PollOption
    extra = 0


@admin.register(Poll)
class PollAdmin(admin.ModelAdmin):
    """Admin interface for Poll model."""

    list_display = ["id", "message", "question", "created_at"]
    raw_id_fields = ["message"]
    inlines = [PollOptionInline]


@admin.register(ReadMarker)
class ReadMarkerAdmin(admin.ModelAdmin):
    """Admin interface for ReadMarker model."""

    list_display = ["user", "conversation", "last_read_at"]
    raw_id_fields = ["user", "conversation"]
    ordering = ["-last_read_at"]
