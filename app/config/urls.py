"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair (email/password)
        token/refresh/             - Refresh access token
        me/                        - Current user
    /api/v1/chat/                  - Chat endpoints
        conversations/             - Conversation list
        conversations/direct/      - Open direct thread
        conversations/clubs/       - Create club conversation
        conversations/{id}/read/   - Mark conversation as read
        conversations/{id}/pinned/ - Pinned messages
        conversations/{id}/messages/ - Message list/send
        conversations/{id}/messages/{pk}/ - Message delete
        conversations/{id}/messages/{pk}/react/ - Toggle reaction
        conversations/{id}/messages/{pk}/vote/  - Poll vote
        conversations/{id}/messages/{pk}/pin/   - Pin/unpin
        unread/                    - Unread badge counts
        presence/                  - Online user ids
    /ws/chat/                      - WebSocket signals (see chat.routing)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (JWT)
    path("auth/", include("authentication.urls")),
    # Chat
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Reading Club Chat Admin"
admin.site.site_title = "Chat Admin"
admin.site.index_title = "Conversations and members"
