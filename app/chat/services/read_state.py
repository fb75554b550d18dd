"""
Read-State Tracker.

Keeps one marker per (user, conversation): the instant up to which the user
has read. Unread state is always derived from the marker and the message
list at query time and is never cached.

Definitions:
    unread message: authored by someone else AND created strictly after the
                    marker (every message by others when there is no marker)
    first unread index: position in the viewer's snapshot of the earliest
                        unread message

Markers only ever move forward: ``mark_read(at)`` stores max(existing, at),
so a late network reply carrying an older timestamp cannot un-read anything.
Markers are per user, so there is no cross-user contention.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from chat.constants import UNREAD_CONFIG
from chat.models import Conversation, Message, ReadMarker
from core.services import BaseService

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class ReadStateTracker(BaseService):
    """Per-user, per-conversation read markers and unread computation."""

    @classmethod
    def mark_read(
        cls,
        user: User,
        conversation_id: int,
        at: datetime | None = None,
    ) -> ReadMarker:
        """
        Advance the user's marker to ``at`` (default: now).

        The marker is created on first use and never moves backwards.

        Args:
            user: Reader
            conversation_id: Conversation being read
            at: Read instant; defaults to the server clock

        Returns:
            The stored ReadMarker
        """
        at = at or timezone.now()
        with transaction.atomic():
            marker, created = ReadMarker.objects.select_for_update().get_or_create(
                user=user,
                conversation_id=conversation_id,
                defaults={"last_read_at": at},
            )
            if not created and at > marker.last_read_at:
                marker.last_read_at = at
                marker.save(update_fields=["last_read_at", "updated_at"])
            elif not created:
                logger.debug(
                    f"Ignoring stale read mark for user {user.pk} in conversation "
                    f"{conversation_id}: {at} <= {marker.last_read_at}"
                )
        return marker

    @classmethod
    def get_marker(cls, user: User, conversation_id: int) -> datetime | None:
        """Return the user's last-read instant, or None if never marked."""
        return (
            ReadMarker.objects.filter(user=user, conversation_id=conversation_id)
            .values_list("last_read_at", flat=True)
            .first()
        )

    @classmethod
    def unread_messages(cls, user: User, conversation_id: int):
        """
        Queryset of messages that are unread for ``user``.

        Own messages never count, whatever the marker says. Messages the user
        hid for themselves are excluded. Tombstones still count: they were
        delivered before being deleted.
        """
        queryset = (
            Message.objects.filter(conversation_id=conversation_id)
            .visible_to(user)
            .exclude(author_id=user.pk)
        )
        marker = cls.get_marker(user, conversation_id)
        if marker is not None:
            queryset = queryset.filter(created_at__gt=marker)
        return queryset

    @classmethod
    def unread_count(cls, user: User, conversation_id: int) -> int:
        """Number of unread messages for ``user`` in the conversation."""
        return cls.unread_messages(user, conversation_id).count()

    @classmethod
    def first_unread_index(cls, user: User, conversation_id: int) -> int | None:
        """
        Index of the earliest unread message in the user's snapshot.

        The index is the number of visible messages ordered before the first
        unread one under (created_at, sequence), so it lines up with
        MessageStore.snapshot(conversation_id, viewer=user).

        Returns:
            Zero-based index, or None when everything is read
        """
        first = (
            cls.unread_messages(user, conversation_id)
            .in_order()
            .values_list("created_at", "sequence")
            .first()
        )
        if first is None:
            return None

        created_at, sequence = first
        return (
            Message.objects.filter(conversation_id=conversation_id)
            .visible_to(user)
            .filter(
                Q(created_at__lt=created_at)
                | Q(created_at=created_at, sequence__lt=sequence)
            )
            .count()
        )

    @classmethod
    def unread_summary(cls, user: User) -> dict:
        """
        Unread badge counts across all of the user's conversations.

        Each count, and the total, is capped at UNREAD_CONFIG.BADGE_CAP.

        Returns:
            {"total": int, "conversations": [{"conversation_id", "unread_count"}]}
        """
        conversation_ids = Conversation.objects.filter(
            participants__user=user,
            participants__left_at__isnull=True,
        ).values_list("pk", flat=True)

        conversations = []
        total = 0
        for conversation_id in conversation_ids:
            count = cls.unread_count(user, conversation_id)
            if count:
                conversations.append(
                    {
                        "conversation_id": conversation_id,
                        "unread_count": min(count, UNREAD_CONFIG.BADGE_CAP),
                    }
                )
                total += count

        return {
            "total": min(total, UNREAD_CONFIG.BADGE_CAP),
            "conversations": conversations,
        }
