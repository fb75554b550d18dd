"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - Signal channel (presence, typing, read receipts)

Authentication:
    JWT token should be passed as query parameter: ?token=<jwt_access_token>
    JWTAuthMiddleware validates the token and attaches the user to the
    consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
