"""
Tests for GatewayClient request building and error mapping.
"""

import json

import httpx
import pytest

from chat_client import GatewayClient
from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)

pytestmark = pytest.mark.asyncio


def make_client(handler) -> GatewayClient:
    return GatewayClient(
        "https://chat.test/", "token-abc", transport=httpx.MockTransport(handler)
    )


class TestRequests:
    async def test_prefix_and_bearer_header(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"messages": []})

        async with make_client(handler) as client:
            await client.send_message(12, {"content": "hi"})

        [request] = seen
        assert request.url.path == "/api/v1/chat/conversations/12/messages/"
        assert request.headers["Authorization"] == "Bearer token-abc"
        assert json.loads(request.content) == {"content": "hi"}

    async def test_delete_sends_mode(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler) as client:
            await client.delete_message(12, 5, mode="me")

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/api/v1/chat/conversations/12/messages/5/"
        assert seen[0].url.params["mode"] == "me"

    async def test_pin_omits_flag_when_toggling(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"messages": []})

        async with make_client(handler) as client:
            await client.pin(12, 5)
            await client.pin(12, 5, pinned=False)

        assert bodies == [{}, {"pinned": False}]

    async def test_online_user_ids(self):
        def handler(request):
            assert request.url.path == "/api/v1/chat/presence/"
            return httpx.Response(200, json={"online_user_ids": [1, 4]})

        async with make_client(handler) as client:
            assert await client.online_user_ids() == [1, 4]


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status_code,error_class",
        [
            (401, UnauthorizedError),
            (403, PermissionDeniedError),
            (404, NotFoundError),
            (409, ConflictError),
            (422, ValidationError),
            (502, ExternalServiceError),
        ],
    )
    async def test_status_maps_to_error(self, status_code, error_class):
        def handler(request):
            return httpx.Response(
                status_code, json={"error": "Nope", "error_code": "SOME_CODE"}
            )

        async with make_client(handler) as client:
            with pytest.raises(error_class) as exc_info:
                await client.list_messages(12)

        assert exc_info.value.message == "Nope"
        assert exc_info.value.error_code == "SOME_CODE"

    async def test_field_errors_become_details(self):
        def handler(request):
            return httpx.Response(
                422,
                json={
                    "error": "Invalid request",
                    "error_code": "VALIDATION_ERROR",
                    "errors": {"emoji": ["This field is required."]},
                },
            )

        async with make_client(handler) as client:
            with pytest.raises(ValidationError) as exc_info:
                await client.react(12, 5, "")

        assert exc_info.value.details == {"emoji": ["This field is required."]}
        assert not exc_info.value.retryable

    async def test_non_json_error_uses_reason_phrase(self):
        def handler(request):
            return httpx.Response(503, text="upstream down")

        async with make_client(handler) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.list_messages(12)

        assert exc_info.value.message == "Service Unavailable"
        assert exc_info.value.retryable

    async def test_timeout_becomes_external_service_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.list_messages(12)

        assert exc_info.value.error_code == "TRANSPORT_ERROR"
        assert exc_info.value.details == {"reason": "timed out"}

    async def test_non_json_success_body_becomes_external_service_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>proxy login</html>")

        async with make_client(handler) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.list_messages(12)

        assert exc_info.value.error_code == "INVALID_RESPONSE"
        assert exc_info.value.retryable
