"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections.
Supports token via query string or subprotocol.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods:
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the access token, validates it with simplejwt and attaches the
    user (or AnonymousUser) to ``scope["user"]``. Rejection happens in the
    consumer so it can close with an application close code.

    Token sources (in order of precedence):
        1. Query string: ?token=<jwt_token>
        2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = self._get_token_from_query(scope) or self._get_token_from_subprotocol(
            scope
        )

        if token:
            scope["user"] = await self._get_user_from_token(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)

    @staticmethod
    def _get_token_from_query(scope) -> str | None:
        """Extract token from query string."""
        query_string = scope.get("query_string", b"").decode()
        token_list = parse_qs(query_string).get("token", [])
        return token_list[0] if token_list else None

    @staticmethod
    def _get_token_from_subprotocol(scope) -> str | None:
        """
        Extract token from WebSocket subprotocol.

        Expects: Sec-WebSocket-Protocol: jwt, <token>
        """
        subprotocols = scope.get("subprotocols", [])
        if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
            return subprotocols[1]
        return None

    @database_sync_to_async
    def _get_user_from_token(self, token: str):
        """
        Validate JWT token and get user.

        Returns:
            User instance if valid and active, AnonymousUser otherwise
        """
        User = get_user_model()

        try:
            access_token = AccessToken(token)
            user_id = access_token[api_settings.USER_ID_CLAIM]
            user = User.objects.get(**{api_settings.USER_ID_FIELD: user_id})
        except TokenError as e:
            logger.warning(f"Invalid JWT token on WebSocket: {e}")
            return AnonymousUser()
        except (KeyError, User.DoesNotExist):
            logger.warning("User not found for WebSocket token")
            return AnonymousUser()

        if not user.is_active:
            logger.warning(f"Inactive user attempted WebSocket connection: {user.pk}")
            return AnonymousUser()

        return user
