"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get("/api/v1/auth/me/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Create a basic active user."""
    return UserFactory()


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with a JWT access token for ``user``."""
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client
