"""
Authentication models.

The chat service only needs an identity with a display name: profile data,
avatars and club administration live in other services.

Models:
    User: Email-authenticated user with a display name used as the
          denormalized author name on messages
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        display_name: Name shown next to messages (copied at send time)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created

    Usage:
        user = User.objects.create_user(
            email="reader@example.com",
            password="securepassword",
            display_name="Avid Reader",
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    display_name = models.CharField(
        max_length=80,
        blank=True,
        default="",
        help_text="Public name shown on messages; falls back to the email local part",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return the display name (Django admin hook)."""
        return self.get_display_name()

    def get_short_name(self):
        return self.get_display_name()

    def get_display_name(self) -> str:
        """
        Return the name to show next to this user's messages.

        Falls back to the local part of the email address when no display
        name was chosen.
        """
        if self.display_name:
            return self.display_name
        return self.email.split("@", 1)[0]
