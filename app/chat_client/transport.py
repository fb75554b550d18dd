"""
HTTP transport for the chat client.

GatewayClient wraps httpx.AsyncClient around the /api/v1/chat/ endpoints and
turns every failure into a core.exceptions error:

    401 → UnauthorizedError          409 → ConflictError
    403 → PermissionDeniedError      422 → ValidationError
    404 → NotFoundError              429 → RateLimitError
    5xx, timeouts, connection errors → ExternalServiceError (retryable)

Usage:
    async with GatewayClient("https://chat.example.com", token) as client:
        messages = await client.send_message(12, {"content": "hi"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from core.exceptions import ExternalServiceError, error_for_status

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/chat"
DEFAULT_TIMEOUT = 10.0


class GatewayClient:
    """
    Async client for the conversation gateway.

    Args:
        base_url: Server origin, e.g. "https://chat.example.com"
        token: JWT access token
        transport: Optional httpx transport (tests pass httpx.MockTransport)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    async def list_conversations(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/conversations/")

    async def open_direct(self, user_id: int) -> dict[str, Any]:
        return await self._request(
            "POST", "/conversations/direct/", json={"user_id": user_id}
        )

    async def mark_read(
        self, conversation_id: int, at: datetime | None = None
    ) -> dict[str, Any]:
        body = {"at": at.isoformat()} if at is not None else {}
        return await self._request(
            "POST", f"/conversations/{conversation_id}/read/", json=body
        )

    async def pinned(self, conversation_id: int) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/conversations/{conversation_id}/pinned/")
        return data["messages"]

    async def unread_summary(self) -> dict[str, Any]:
        return await self._request("GET", "/unread/")

    async def online_user_ids(self) -> list[int]:
        data = await self._request("GET", "/presence/")
        return data["online_user_ids"]

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    async def list_messages(self, conversation_id: int) -> dict[str, Any]:
        """{messages, unread_count, first_unread_index}"""
        return await self._request("GET", self._messages_path(conversation_id))

    async def send_message(
        self, conversation_id: int, payload: dict[str, Any]
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "POST", self._messages_path(conversation_id), json=payload
        )
        return data["messages"]

    async def react(
        self, conversation_id: int, message_id: int, emoji: str
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "POST",
            self._message_path(conversation_id, message_id, "react"),
            json={"emoji": emoji},
        )
        return data["messages"]

    async def vote(
        self, conversation_id: int, message_id: int, option_index: int
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "POST",
            self._message_path(conversation_id, message_id, "vote"),
            json={"option_index": option_index},
        )
        return data["messages"]

    async def pin(
        self, conversation_id: int, message_id: int, pinned: bool | None = None
    ) -> list[dict[str, Any]]:
        body = {} if pinned is None else {"pinned": pinned}
        data = await self._request(
            "POST", self._message_path(conversation_id, message_id, "pin"), json=body
        )
        return data["messages"]

    async def delete_message(
        self, conversation_id: int, message_id: int, mode: str = "everyone"
    ) -> None:
        await self._request(
            "DELETE",
            self._message_path(conversation_id, message_id),
            params={"mode": mode},
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _messages_path(conversation_id: int) -> str:
        return f"/conversations/{conversation_id}/messages/"

    @staticmethod
    def _message_path(conversation_id: int, message_id: int, action: str = "") -> str:
        path = f"/conversations/{conversation_id}/messages/{message_id}/"
        return f"{path}{action}/" if action else path

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Perform a request and decode the JSON body.

        Raises:
            ExternalServiceError: Transport failure, 5xx or undecodable body
            BaseApplicationError subclass: Any other error status
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e!r}")
            raise ExternalServiceError(
                "Chat server unreachable",
                error_code="TRANSPORT_ERROR",
                details={"reason": str(e) or e.__class__.__name__},
            ) from e

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.warning(f"{method} {path} returned a non-JSON body")
                raise ExternalServiceError(
                    "Chat server returned an unreadable response",
                    error_code="INVALID_RESPONSE",
                    details={"status": response.status_code},
                ) from e

        body = self._error_body(response)
        logger.info(
            f"{method} {path} returned {response.status_code} "
            f"({body.get('error_code')})"
        )
        raise error_for_status(
            response.status_code,
            body.get("error") or response.reason_phrase,
            error_code=body.get("error_code"),
            details=body.get("errors") or body.get("details"),
        )

    @staticmethod
    def _error_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
