"""
Tests for chat model constraints and computed properties.

This module tests:
- Conversation: Kind properties, active participant queries, str
- DirectConversationPair: Uniqueness and canonical ordering constraints
- Participant: Active participation constraint, admin role
- Message: Ordering, visibility, tombstones, poll detection
- ReadMarker: One marker per (user, conversation)

Test Organization:
    - Each model has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>
"""

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from authentication.tests.factories import UserFactory
from chat.models import (
    ConversationKind,
    DirectConversationPair,
    Message,
    Participant,
    ParticipantRole,
    ReadMarker,
)
from chat.tests.factories import (
    ClubConversationFactory,
    ConversationFactory,
    MessageFactory,
    ParticipantFactory,
    PollFactory,
)


# =============================================================================
# TestConversation
# =============================================================================


class TestConversation:
    """Tests for Conversation model."""

    def test_kind_properties_for_direct(self, direct):
        assert direct.is_direct
        assert not direct.is_club
        assert direct.kind == ConversationKind.DIRECT

    def test_kind_properties_for_club(self, club):
        assert club.is_club
        assert not club.is_direct

    def test_get_active_participants_excludes_left_users(self, club, other_member):
        """
        Given a club where one member has left
        When listing active participants
        Then the departed member is excluded
        """
        Participant.objects.filter(conversation=club, user=other_member).update(
            left_at=timezone.now()
        )

        user_ids = set(club.get_active_participants().values_list("user_id", flat=True))

        assert other_member.pk not in user_ids
        assert len(user_ids) == 2

    def test_get_active_participant_for_user_accepts_id(self, club, member_user):
        participant = club.get_active_participant_for_user(member_user.pk)

        assert participant is not None
        assert participant.user_id == member_user.pk

    def test_get_active_participant_for_user_none_for_outsider(self, club, outsider):
        assert club.get_active_participant_for_user(outsider) is None

    def test_str_direct(self, direct):
        assert str(direct) == f"Direct({direct.pk})"

    def test_str_club_with_title(self, db):
        club = ConversationFactory(title="Middlemarch")

        assert str(club) == "Club: Middlemarch"

    def test_str_club_without_title(self, db):
        club = ConversationFactory(title="")

        assert str(club) == f"Club({club.pk})"


# =============================================================================
# TestDirectConversationPair
# =============================================================================


class TestDirectConversationPair:
    """Tests for the unordered-pair uniqueness of direct threads."""

    def test_canonical_orders_ids(self):
        assert DirectConversationPair.canonical(9, 4) == (4, 9)
        assert DirectConversationPair.canonical(4, 9) == (4, 9)

    def test_unique_constraint_prevents_duplicate_pairs(self, direct):
        pair = direct.direct_pair
        other = ConversationFactory(kind=ConversationKind.DIRECT, title="")

        with pytest.raises(IntegrityError), transaction.atomic():
            DirectConversationPair.objects.create(
                conversation=other,
                user_lower_id=pair.user_lower_id,
                user_higher_id=pair.user_higher_id,
            )

    def test_check_constraint_enforces_canonical_order(self, db):
        low, high = sorted([UserFactory().pk, UserFactory().pk])
        conversation = ConversationFactory(kind=ConversationKind.DIRECT, title="")

        with pytest.raises(IntegrityError), transaction.atomic():
            DirectConversationPair.objects.create(
                conversation=conversation,
                user_lower_id=high,
                user_higher_id=low,
            )


# =============================================================================
# TestParticipant
# =============================================================================


class TestParticipant:
    """Tests for Participant model."""

    def test_one_active_participation_per_user(self, club, member_user):
        with pytest.raises(IntegrityError), transaction.atomic():
            Participant.objects.create(conversation=club, user=member_user)

    def test_rejoin_allowed_after_leaving(self, club, member_user):
        Participant.objects.filter(conversation=club, user=member_user).update(
            left_at=timezone.now()
        )

        rejoined = ParticipantFactory(conversation=club, user=member_user)

        assert rejoined.is_active

    def test_is_admin_only_for_admin_role(self, club, club_admin, member_user):
        admin = club.get_active_participant_for_user(club_admin)
        member = club.get_active_participant_for_user(member_user)

        assert admin.is_admin
        assert admin.role == ParticipantRole.ADMIN
        assert not member.is_admin

    def test_direct_participants_have_no_role(self, direct):
        assert set(direct.participants.values_list("role", flat=True)) == {None}


# =============================================================================
# TestMessage
# =============================================================================


class TestMessage:
    """Tests for Message model and its queryset helpers."""

    def test_in_order_sorts_by_created_at_then_sequence(self, club, member_user):
        """
        Given three messages sharing one timestamp
        When ordering the conversation
        Then sequence breaks the tie
        """
        at = timezone.now()
        third = MessageFactory(conversation=club, author=member_user, body="c")
        first = MessageFactory(conversation=club, author=member_user, body="a")
        second = MessageFactory(conversation=club, author=member_user, body="b")
        Message.objects.filter(pk__in=[first.pk, second.pk, third.pk]).update(
            created_at=at
        )

        ordered = list(Message.objects.filter(conversation=club).in_order())

        assert [m.sequence for m in ordered] == sorted(m.sequence for m in ordered)
        assert [m.body for m in ordered] == ["c", "a", "b"]

    def test_visible_to_excludes_hidden_messages(self, club, member_user, other_member):
        message = MessageFactory(conversation=club, author=other_member)
        message.hidden_for.add(member_user)

        assert not Message.objects.visible_to(member_user).filter(pk=message.pk).exists()
        assert Message.objects.visible_to(other_member).filter(pk=message.pk).exists()
        assert Message.objects.visible_to(None).filter(pk=message.pk).exists()

    def test_soft_delete_clears_content_and_keeps_row(self, club, member_user):
        message = MessageFactory(
            conversation=club,
            author=member_user,
            body="secret",
            attachment_kind="image",
            attachment_url="https://cdn.example.com/a.png",
            attachment_name="a.png",
            is_pinned=True,
        )

        assert message.soft_delete() is True
        message.refresh_from_db()

        assert message.is_deleted
        assert message.deleted_at is not None
        assert message.body == ""
        assert message.get_attachment() is None
        assert not message.is_pinned

    def test_soft_delete_twice_is_noop(self, club, member_user):
        message = MessageFactory(conversation=club, author=member_user)
        message.soft_delete()
        deleted_at = message.deleted_at

        assert message.soft_delete() is False
        assert message.deleted_at == deleted_at

    def test_has_poll(self, club, member_user):
        plain = MessageFactory(conversation=club, author=member_user)
        poll = PollFactory(message__conversation=club, message__author=member_user)

        assert not Message.objects.get(pk=plain.pk).has_poll
        assert Message.objects.get(pk=poll.message_id).has_poll

    def test_sequence_unique_per_conversation(self, club, member_user):
        message = MessageFactory(conversation=club, author=member_user)

        with pytest.raises(IntegrityError), transaction.atomic():
            MessageFactory(
                conversation=club, author=member_user, sequence=message.sequence
            )

    def test_str_marks_tombstones(self, club, member_user):
        message = MessageFactory(conversation=club, author=member_user, body="hello")
        message.soft_delete()

        assert str(message).endswith("[deleted]")


# =============================================================================
# TestReadMarker
# =============================================================================


class TestReadMarker:
    def test_one_marker_per_user_and_conversation(self, club, member_user):
        ReadMarker.objects.create(
            user=member_user, conversation=club, last_read_at=timezone.now()
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            ReadMarker.objects.create(
                user=member_user, conversation=club, last_read_at=timezone.now()
            )

    def test_markers_are_per_conversation(self, db, member_user):
        first = ClubConversationFactory()
        second = ClubConversationFactory()
        now = timezone.now()

        ReadMarker.objects.create(user=member_user, conversation=first, last_read_at=now)
        ReadMarker.objects.create(user=member_user, conversation=second, last_read_at=now)

        assert ReadMarker.objects.filter(user=member_user).count() == 2
