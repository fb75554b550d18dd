"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                          GET
        /conversations/direct/                   POST
        /conversations/clubs/                    POST
        /conversations/{id}/read/                POST
        /conversations/{id}/pinned/              GET

    Messages:
        /conversations/{id}/messages/            GET, POST
        /conversations/{id}/messages/{pk}/       DELETE
        /conversations/{id}/messages/{pk}/react/ POST
        /conversations/{id}/messages/{pk}/vote/  POST
        /conversations/{id}/messages/{pk}/pin/   POST

    Read state / presence:
        /unread/                                 GET
        /presence/                               GET

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import (
    ConversationViewSet,
    MessageViewSet,
    PresenceView,
    UnreadSummaryView,
)

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path("unread/", UnreadSummaryView.as_view(), name="unread-summary"),
    path("presence/", PresenceView.as_view(), name="presence"),
    # Nested routes for messages
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/",
        MessageViewSet.as_view({"delete": "destroy"}),
        name="conversation-message-detail",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/react/",
        MessageViewSet.as_view({"post": "react"}),
        name="conversation-message-react",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/vote/",
        MessageViewSet.as_view({"post": "vote"}),
        name="conversation-message-vote",
    ),
    path(
        "conversations/<int:conversation_pk>/messages/<int:pk>/pin/",
        MessageViewSet.as_view({"post": "pin"}),
        name="conversation-message-pin",
    ),
]
