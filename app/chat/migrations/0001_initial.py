# Generated manually for the chat messaging core

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def big_id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "kind",
                    models.CharField(
                        choices=[("club", "Club"), ("direct", "Direct Message")],
                        db_index=True,
                        default="club",
                        help_text="Kind of conversation (club or direct)",
                        max_length=10,
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Title for club conversations (empty for direct)",
                        max_length=100,
                    ),
                ),
                (
                    "last_sequence",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Last message sequence number assigned in this conversation",
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="Timestamp of most recent message (for sorting conversation lists)",
                        null=True,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who created this conversation",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_conversations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-last_message_at", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["kind", "-last_message_at"],
                        name="chat_conv_kind_last_msg_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DirectConversationPair",
            fields=[
                (
                    "conversation",
                    models.OneToOneField(
                        help_text="The direct conversation this pair represents",
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="direct_pair",
                        serialize=False,
                        to="chat.conversation",
                    ),
                ),
                (
                    "user_lower",
                    models.ForeignKey(
                        help_text="User with lower ID in this conversation pair",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user_higher",
                    models.ForeignKey(
                        help_text="User with higher ID in this conversation pair",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_direct_conversation_pair",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user_lower", "user_higher"),
                        name="unique_direct_conversation_pair",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("user_lower_id__lt", models.F("user_higher_id"))
                        ),
                        name="user_lower_less_than_higher",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Participant",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "role",
                    models.CharField(
                        blank=True,
                        choices=[("admin", "Admin"), ("member", "Member")],
                        help_text="Role in club conversation (null for direct threads)",
                        max_length=10,
                        null=True,
                    ),
                ),
                (
                    "joined_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        help_text="When the user joined this conversation",
                    ),
                ),
                (
                    "left_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="When the user left (null if still active)",
                        null=True,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this participation belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User participating in the conversation",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="conversation_participations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_participant",
                "ordering": ["joined_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "left_at"], name="chat_part_user_active_idx"
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("left_at__isnull", True)),
                        fields=("conversation", "user"),
                        name="unique_active_participation",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "is_deleted",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether this record has been soft deleted",
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp when this record was soft deleted",
                        null=True,
                    ),
                ),
                (
                    "sequence",
                    models.PositiveBigIntegerField(
                        help_text="Insertion sequence within the conversation (tie-breaker for ordering)"
                    ),
                ),
                (
                    "author_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Author display name captured at send time",
                        max_length=80,
                    ),
                ),
                (
                    "body",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Message text (cleared when tombstoned)",
                    ),
                ),
                (
                    "attachment_kind",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("image", "Image"),
                            ("video", "Video"),
                            ("audio", "Audio"),
                            ("file", "File"),
                            ("location", "Location"),
                        ],
                        default="",
                        help_text="Attachment kind (empty when no attachment)",
                        max_length=10,
                    ),
                ),
                (
                    "attachment_url",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Opaque URL of the attachment blob",
                        max_length=2048,
                    ),
                ),
                (
                    "attachment_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Display name of the attachment",
                        max_length=255,
                    ),
                ),
                (
                    "reply_snippet",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Preview of the replied-to message captured at send time",
                        max_length=200,
                    ),
                ),
                (
                    "reply_author_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Author name of the replied-to message",
                        max_length=80,
                    ),
                ),
                (
                    "forwarded_from_author_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Original author name of a forwarded message",
                        max_length=80,
                    ),
                ),
                (
                    "is_pinned",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether the message is pinned in its conversation",
                    ),
                ),
                (
                    "client_message_id",
                    models.CharField(
                        blank=True,
                        help_text="Sender-generated temporary id; a retry with the same id is deduplicated",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "author",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who sent this message",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="chat_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this message belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.conversation",
                    ),
                ),
                (
                    "forwarded_from",
                    models.ForeignKey(
                        blank=True,
                        help_text="Source message when this is a forward",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="forwards",
                        to="chat.message",
                    ),
                ),
                (
                    "reply_to",
                    models.ForeignKey(
                        blank=True,
                        help_text="Message this one replies to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="replies",
                        to="chat.message",
                    ),
                ),
                (
                    "hidden_for",
                    models.ManyToManyField(
                        blank=True,
                        db_table="chat_message_hidden_for",
                        help_text="Users who deleted this message for themselves",
                        related_name="hidden_chat_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "sequence"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "created_at", "sequence"],
                        name="chat_msg_conv_order_idx",
                    ),
                    models.Index(
                        condition=models.Q(("is_pinned", True)),
                        fields=["conversation", "is_pinned"],
                        name="chat_msg_conv_pinned_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("conversation", "sequence"),
                        name="unique_message_sequence",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("client_message_id__isnull", False)),
                        fields=("conversation", "author", "client_message_id"),
                        name="unique_client_message_id",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MessageReaction",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "emoji",
                    models.CharField(help_text="Emoji character(s)", max_length=16),
                ),
                (
                    "message",
                    models.ForeignKey(
                        help_text="Message being reacted to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reactions",
                        to="chat.message",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who reacted",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chat_reactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message_reaction",
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("message", "user", "emoji"),
                        name="unique_user_emoji_reaction",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Poll",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "question",
                    models.CharField(help_text="Poll question", max_length=300),
                ),
                (
                    "message",
                    models.OneToOneField(
                        help_text="Message that carries this poll",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="poll",
                        to="chat.message",
                    ),
                ),
            ],
            options={
                "db_table": "chat_poll",
            },
        ),
        migrations.CreateModel(
            name="PollOption",
            fields=[
                big_id(),
                (
                    "position",
                    models.PositiveSmallIntegerField(
                        help_text="Zero-based index of the option"
                    ),
                ),
                ("text", models.CharField(help_text="Option label", max_length=100)),
                (
                    "poll",
                    models.ForeignKey(
                        help_text="Poll this option belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="options",
                        to="chat.poll",
                    ),
                ),
            ],
            options={
                "db_table": "chat_poll_option",
                "ordering": ["position"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("poll", "position"),
                        name="unique_poll_option_position",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="PollVote",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "option",
                    models.ForeignKey(
                        help_text="Chosen option",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="votes",
                        to="chat.polloption",
                    ),
                ),
                (
                    "poll",
                    models.ForeignKey(
                        help_text="Poll voted on",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="votes",
                        to="chat.poll",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Voter",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chat_poll_votes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_poll_vote",
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("poll", "user"), name="unique_poll_vote_per_user"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ReadMarker",
            fields=[
                big_id(),
                *timestamps(),
                (
                    "last_read_at",
                    models.DateTimeField(
                        help_text="Instant up to which the user has read the conversation"
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this marker belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="read_markers",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User this marker belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chat_read_markers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_read_marker",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "conversation"), name="unique_read_marker"
                    )
                ],
            },
        ),
    ]
