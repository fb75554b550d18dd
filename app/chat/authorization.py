"""
Membership and role rules for chat operations.

Club membership itself is administered elsewhere; this module only answers
"may this user do X in this conversation" from the local Participant rows.
Both the HTTP gateway and the WebSocket consumer use it.

Rules:
    - Reading, sending, reacting, voting, marking read and "delete for me"
      require active membership.
    - Pinning and "delete for everyone" require being the message author or
      a club admin. Direct threads have no admins, so only the author.

Error Codes:
    NOT_FOUND: Conversation does not exist
    NOT_MEMBER: User is not an active participant
    FORBIDDEN: Member, but neither author nor admin
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat.models import Conversation, Participant
from core.exceptions import NotFoundError, PermissionDeniedError

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import Message


class ChatAuthorization:
    """
    Stateless authorization checks.

    ``require_*`` methods raise core.exceptions; ``is_*``/``can_*`` methods
    return booleans for composition.
    """

    @classmethod
    def require_member(
        cls, user: User, conversation_id: int
    ) -> tuple[Conversation, Participant]:
        """
        Resolve a conversation and the caller's active membership.

        Raises:
            NotFoundError: Conversation does not exist
            PermissionDeniedError: NOT_MEMBER
        """
        conversation = Conversation.objects.filter(pk=conversation_id).first()
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                error_code="NOT_FOUND",
                details={"conversation_id": conversation_id},
            )

        participant = conversation.get_active_participant_for_user(user)
        if participant is None:
            raise PermissionDeniedError(
                "You are not a member of this conversation",
                error_code="NOT_MEMBER",
            )
        return conversation, participant

    @classmethod
    def is_member(cls, user_id: int, conversation_id: int) -> bool:
        return Participant.objects.filter(
            conversation_id=conversation_id,
            user_id=user_id,
            left_at__isnull=True,
        ).exists()

    @classmethod
    def can_moderate(cls, participant: Participant, message: Message) -> bool:
        """Author of the message, or admin of the club."""
        if message.author_id is not None and message.author_id == participant.user_id:
            return True
        return participant.is_admin

    @classmethod
    def require_moderator(cls, participant: Participant, message: Message) -> None:
        """
        Raises:
            PermissionDeniedError: FORBIDDEN when neither author nor admin
        """
        if not cls.can_moderate(participant, message):
            raise PermissionDeniedError(
                "Only the author or a club admin can do this",
                error_code="FORBIDDEN",
            )

    @classmethod
    def shares_conversation(cls, user_id: int, other_user_id: int) -> bool:
        """True if both users are active members of some conversation."""
        return Participant.objects.filter(
            user_id=other_user_id,
            left_at__isnull=True,
            conversation_id__in=Participant.objects.filter(
                user_id=user_id, left_at__isnull=True
            ).values("conversation_id"),
        ).exists()
