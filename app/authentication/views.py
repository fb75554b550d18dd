"""
Authentication views.
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer


class MeView(APIView):
    """Return the authenticated caller's identity."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user",
        description="Identity of the caller; chat clients use the id to "
        "distinguish their own messages.",
        responses={200: UserSerializer},
        tags=["Authentication"],
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)
