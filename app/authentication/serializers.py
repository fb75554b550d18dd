"""
Serializers for the authentication API.
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """Public identity of a user as seen by chat clients."""

    display_name = serializers.CharField(source="get_display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "display_name"]
        read_only_fields = fields
