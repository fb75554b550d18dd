"""
ViewSets for chat API.

This module exposes ConversationGateway over HTTP:
- ConversationViewSet: Conversation list/creation, read marking, pinned list
- MessageViewSet: Message operations (nested under conversation)
- UnreadSummaryView: Capped unread badge counts
- PresenceView: Current online user ids

URL Structure:
    /api/v1/chat/conversations/                              GET
    /api/v1/chat/conversations/direct/                       POST
    /api/v1/chat/conversations/clubs/                        POST
    /api/v1/chat/conversations/{id}/read/                    POST
    /api/v1/chat/conversations/{id}/pinned/                  GET
    /api/v1/chat/conversations/{id}/messages/                GET, POST
    /api/v1/chat/conversations/{id}/messages/{pk}/           DELETE
    /api/v1/chat/conversations/{id}/messages/{pk}/react/     POST
    /api/v1/chat/conversations/{id}/messages/{pk}/vote/      POST
    /api/v1/chat/conversations/{id}/messages/{pk}/pin/       POST
    /api/v1/chat/unread/                                     GET
    /api/v1/chat/presence/                                   GET

Design Decisions:
    - Views never query chat models directly; the gateway owns every rule
    - Mutations answer with the full conversation snapshot so clients can
      replace local state wholesale
    - Failures render as {"error", "error_code", "errors"?} with the status
      carried by the ServiceResult
"""

from __future__ import annotations

import builtins

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.serializers import (
    ClubCreateSerializer,
    ConversationSerializer,
    DirectConversationCreateSerializer,
    MarkReadSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    PinSerializer,
    ReactionSerializer,
    VoteSerializer,
)
from chat.services import ConversationGateway, DeleteMode, PresenceHub


def error_response(result) -> Response:
    """Render a failed ServiceResult."""
    return Response(result.to_response(), status=result.status_code)


def validate_input(serializer_class, data):
    """
    Run an input serializer.

    Returns:
        (validated_data, None) on success, (None, Response) on failure.
        Field errors render with the same shape as gateway validation errors.
    """
    serializer = serializer_class(data=data)
    if serializer.is_valid():
        return serializer.validated_data, None
    return None, Response(
        {
            "error": "Invalid request",
            "error_code": "VALIDATION_ERROR",
            "errors": serializer.errors,
        },
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


def snapshot_response(messages) -> Response:
    return Response({"messages": MessageSerializer(messages, many=True).data})


class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversation operations.

    list:
        Conversations the user belongs to, newest activity first, each with
        its unread count.

    direct:
        Open the direct thread with another user. Calling it twice for the
        same pair returns the same conversation.

    clubs:
        Create a club conversation; the creator becomes admin.

    read:
        Mark the conversation read up to now (or a supplied instant).
        Markers never move backwards.

    pinned:
        Pinned messages in creation order.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        responses={200: ConversationSerializer(many=True)},
        tags=["Chat - Conversations"],
    )
    def list(self, request):
        result = ConversationGateway.list_conversations(request.user)
        return Response(ConversationSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="open_direct_conversation",
        summary="Open direct conversation",
        request=DirectConversationCreateSerializer,
        responses={
            200: OpenApiResponse(
                response=ConversationSerializer,
                description="Existing direct conversation",
            ),
            201: OpenApiResponse(
                response=ConversationSerializer,
                description="Direct conversation created",
            ),
            404: OpenApiResponse(description="User not found"),
            422: OpenApiResponse(description="Cannot message yourself"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        data, invalid = validate_input(DirectConversationCreateSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.get_or_create_direct(request.user, data["user_id"])
        if not result.success:
            return error_response(result)

        thread = result.data
        return Response(
            ConversationSerializer(thread.conversation).data,
            status=status.HTTP_201_CREATED if thread.created else status.HTTP_200_OK,
        )

    @extend_schema(
        operation_id="create_club_conversation",
        summary="Create club conversation",
        request=ClubCreateSerializer,
        responses={201: ConversationSerializer},
        tags=["Chat - Conversations"],
    )
    @action(detail=False, methods=["post"])
    def clubs(self, request):
        data, invalid = validate_input(ClubCreateSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.create_club(
            request.user,
            title=data["title"],
            member_ids=data["member_ids"],
            admin_ids=data["admin_ids"],
        )
        if not result.success:
            return error_response(result)
        return Response(
            ConversationSerializer(result.data).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=MarkReadSerializer,
        responses={
            200: OpenApiResponse(description="Marker stored"),
            403: OpenApiResponse(description="Not a member of this conversation"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        data, invalid = validate_input(MarkReadSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.mark_read(request.user, int(pk), at=data["at"])
        if not result.success:
            return error_response(result)
        return Response({"ok": True, "last_read_at": result.data})

    @extend_schema(
        operation_id="list_pinned_messages",
        summary="List pinned messages",
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get"])
    def pinned(self, request, pk=None):
        result = ConversationGateway.get_pinned(request.user, int(pk))
        if not result.success:
            return error_response(result)
        return snapshot_response(result.data)


class MessageViewSet(viewsets.ViewSet):
    """
    ViewSet for message operations within a conversation.

    list:
        Full ordered snapshot with the caller's unread count and the index of
        the first unread message. Does not mark anything read.

    create:
        Send a message (text, attachment, poll, reply or forward).

    destroy:
        ``?mode=everyone`` (default) tombstones the message for all members;
        ``?mode=me`` hides it only for the caller.

    react / vote / pin:
        Toggle a reaction, cast an exclusive poll vote, set or flip the pin.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_messages",
        summary="List messages",
        responses={
            200: OpenApiResponse(description="Messages with unread state"),
            403: OpenApiResponse(description="Not a member of this conversation"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Messages"],
    )
    def list(self, request, conversation_pk=None):
        result = ConversationGateway.get_messages(request.user, int(conversation_pk))
        if not result.success:
            return error_response(result)

        listing = result.data
        return Response(
            {
                "messages": MessageSerializer(listing.messages, many=True).data,
                "unread_count": listing.unread_count,
                "first_unread_index": listing.first_unread_index,
            }
        )

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        description=(
            "Append a message. At least one of content, attachment or poll is "
            "required. Retrying with the same client_message_id does not create "
            "a duplicate."
        ),
        request=MessageCreateSerializer,
        responses={
            200: OpenApiResponse(description="Updated snapshot"),
            403: OpenApiResponse(description="Not a member of this conversation"),
            422: OpenApiResponse(description="Empty message or invalid payload"),
        },
        tags=["Chat - Messages"],
    )
    def create(self, request, conversation_pk=None):
        data, invalid = validate_input(MessageCreateSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.send_message(
            request.user, int(conversation_pk), data
        )
        if not result.success:
            return error_response(result)
        return snapshot_response(result.data)

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        parameters=[
            OpenApiParameter(
                name="mode",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                enum=builtins.list(DeleteMode.choices),
                description="everyone (default) or me",
            ),
        ],
        responses={
            200: OpenApiResponse(description="Deleted"),
            403: OpenApiResponse(description="Neither author nor admin"),
        },
        tags=["Chat - Messages"],
    )
    def destroy(self, request, conversation_pk=None, pk=None):
        mode = request.query_params.get("mode", DeleteMode.EVERYONE)
        result = ConversationGateway.delete_message(
            request.user, int(conversation_pk), int(pk), mode=mode
        )
        if not result.success:
            return error_response(result)
        return Response({"ok": True})

    @extend_schema(
        operation_id="toggle_reaction",
        summary="Toggle reaction",
        request=ReactionSerializer,
        tags=["Chat - Reactions"],
    )
    @action(detail=True, methods=["post"])
    def react(self, request, conversation_pk=None, pk=None):
        data, invalid = validate_input(ReactionSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.react(
            request.user, int(conversation_pk), int(pk), data["emoji"]
        )
        if not result.success:
            return error_response(result)
        return snapshot_response(result.data)

    @extend_schema(
        operation_id="vote_poll",
        summary="Vote on poll",
        request=VoteSerializer,
        responses={
            200: OpenApiResponse(description="Updated snapshot"),
            409: OpenApiResponse(description="Option out of range or message deleted"),
            422: OpenApiResponse(description="Message has no poll"),
        },
        tags=["Chat - Polls"],
    )
    @action(detail=True, methods=["post"])
    def vote(self, request, conversation_pk=None, pk=None):
        data, invalid = validate_input(VoteSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.vote(
            request.user, int(conversation_pk), int(pk), data["option_index"]
        )
        if not result.success:
            return error_response(result)
        return snapshot_response(result.data)

    @extend_schema(
        operation_id="pin_message",
        summary="Pin or unpin message",
        request=PinSerializer,
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["post"])
    def pin(self, request, conversation_pk=None, pk=None):
        data, invalid = validate_input(PinSerializer, request.data)
        if invalid:
            return invalid

        result = ConversationGateway.toggle_pin(
            request.user, int(conversation_pk), int(pk), pinned=data["pinned"]
        )
        if not result.success:
            return error_response(result)
        return snapshot_response(result.data)


# =============================================================================
# Read State & Presence Views
# =============================================================================


class UnreadSummaryView(APIView):
    """
    Unread counts for badges.

    GET /api/v1/chat/unread/
        {"total": int, "conversations": [{"conversation_id", "unread_count"}]}
        Counts are capped at 99.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_unread_summary",
        summary="Get unread summary",
        tags=["Chat - Read State"],
    )
    def get(self, request):
        result = ConversationGateway.unread_summary(request.user)
        return Response(result.data)


class PresenceView(APIView):
    """
    Snapshot of online users.

    GET /api/v1/chat/presence/
        {"online_user_ids": [int, ...]}

    Live updates arrive over the WebSocket as presence:update.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_presence",
        summary="Get online users",
        tags=["Chat - Presence"],
    )
    def get(self, request):
        return Response({"online_user_ids": PresenceHub().online_user_ids()})
