"""
Test configuration and fixtures for chat tests.

This module provides:
- Users with different club roles
- A club conversation (admin + two members) and a direct thread
- JWT-authenticated API clients per user

Usage:
    def test_example(club, member_client):
        response = member_client.get(f"/api/v1/chat/conversations/{club.id}/messages/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.models import ParticipantRole
from chat.services import ConversationGateway
from chat.services.payloads import MessagePayload
from chat.services.store import MessageStore
from chat.tests.factories import ClubConversationFactory, ParticipantFactory


def client_for(user) -> APIClient:
    """API client authenticated with a JWT access token for ``user``."""
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def send(conversation, author, body="", **payload):
    """Append a message through the store and return it."""
    message, _ = MessageStore.append(
        conversation.pk, author, MessagePayload(body=body, **payload)
    )
    return message


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def club_admin(db):
    """Reader who created the club and administers it."""
    return UserFactory(display_name="Ada")


@pytest.fixture
def member_user(db):
    """Regular club member."""
    return UserFactory(display_name="Ben")


@pytest.fixture
def other_member(db):
    """Second regular club member."""
    return UserFactory(display_name="Cleo")


@pytest.fixture
def outsider(db):
    """User who belongs to none of the test conversations."""
    return UserFactory(display_name="Otto")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def club(db, club_admin, member_user, other_member):
    """Club with an admin and two members."""
    conversation = ClubConversationFactory(created_by=club_admin, title="Dune Club")
    ParticipantFactory(
        conversation=conversation, user=member_user, role=ParticipantRole.MEMBER
    )
    ParticipantFactory(
        conversation=conversation, user=other_member, role=ParticipantRole.MEMBER
    )
    return conversation


@pytest.fixture
def direct(db, member_user, other_member):
    """Direct thread between member_user and other_member."""
    result = ConversationGateway.get_or_create_direct(member_user, other_member.pk)
    assert result.success
    return result.data.conversation


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def admin_client(club_admin):
    return client_for(club_admin)


@pytest.fixture
def member_client(member_user):
    return client_for(member_user)


@pytest.fixture
def other_client(other_member):
    return client_for(other_member)


@pytest.fixture
def outsider_client(outsider):
    return client_for(outsider)
