"""
Tests for the User model.
"""

from authentication.tests.factories import UserFactory


class TestUserDisplayName:
    """Tests for User.get_display_name()."""

    def test_returns_display_name_when_set(self, db):
        user = UserFactory(display_name="Maya")

        assert user.get_display_name() == "Maya"

    def test_falls_back_to_email_local_part(self, db):
        """
        Given a user without a display name
        When get_display_name is called
        Then the part of the email before @ is used
        """
        user = UserFactory(email="bookworm@example.com", display_name="")

        assert user.get_display_name() == "bookworm"

    def test_str_is_email(self, db):
        user = UserFactory(email="shelf@example.com")

        assert str(user) == "shelf@example.com"
