"""
Fixtures for chat client tests.

FakeChatServer answers the handful of gateway endpoints the sync engine
uses, in memory, behind httpx.MockTransport. Sends can be held on a gate to
observe the pending state, their responses can be held one by one after
the server committed them, and failures can be queued per request.
"""

import asyncio
import itertools
import json

import httpx
import pytest
import pytest_asyncio

from chat_client import ConversationSyncEngine, GatewayClient, TypingTracker

CONVERSATION_ID = 12
ME = 4
PEER = 7


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeChatServer:
    def __init__(self):
        self.messages: list[dict] = []
        self.requests: list[httpx.Request] = []
        self._failures: list[tuple] = []
        self._send_gate: asyncio.Event | None = None
        self._hold_responses = False
        self.held_responses: list[asyncio.Event] = []
        self._ids = itertools.count(1)

    # Test controls ------------------------------------------------------------

    def hold_sends(self) -> None:
        self._send_gate = asyncio.Event()

    def release_sends(self) -> None:
        self._send_gate.set()

    def hold_responses(self) -> None:
        """Commit each send at once but keep its response until its gate opens."""
        self._hold_responses = True

    def fail_next(self, failure, error_code="SERVER_ERROR", commit=False) -> None:
        """
        Queue a failure for the next send.

        ``failure`` is a status code, a ready-made response or an exception
        to raise. With ``commit`` the message is stored before the error is
        returned, as when a response is lost after the server wrote it.
        """
        self._failures.append((failure, error_code, commit))

    def add(self, content, author_id=PEER, client_message_id=None) -> dict:
        message_id = next(self._ids)
        message = {
            "id": message_id,
            "sequence": message_id,
            "conversation_id": CONVERSATION_ID,
            "author": {"id": author_id, "display_name": f"user{author_id}"},
            "content": content,
            "reactions": [],
            "is_pinned": False,
            "is_deleted": False,
            "client_message_id": client_message_id,
        }
        self.messages.append(message)
        return message

    def sends(self) -> list[dict]:
        return [
            json.loads(request.content)
            for request in self.requests
            if request.method == "POST" and request.url.path.endswith("/messages/")
        ]

    # Transport handler ----------------------------------------------------------

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        body = json.loads(request.content) if request.content else {}

        if path.endswith("/messages/") and request.method == "POST":
            return await self._send(request, body)
        if path.endswith("/messages/"):
            return httpx.Response(
                200,
                json={
                    "messages": self.messages,
                    "unread_count": 2,
                    "first_unread_index": 0 if self.messages else None,
                },
            )
        if path.endswith("/react/"):
            message = self._get(path)
            message["reactions"].append({"emoji": body["emoji"], "user_ids": [ME]})
            return httpx.Response(200, json={"messages": self.messages})
        if path.endswith("/pin/"):
            message = self._get(path)
            message["is_pinned"] = body.get("pinned", not message["is_pinned"])
            return httpx.Response(200, json={"messages": self.messages})
        if path.endswith("/read/"):
            return httpx.Response(
                200, json={"ok": True, "last_read_at": "2026-03-01T12:00:00+00:00"}
            )
        if request.method == "DELETE":
            self.messages.remove(self._get(path))
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404, json={"error": "Not found", "error_code": "NOT_FOUND"})

    async def _send(self, request, body) -> httpx.Response:
        if self._send_gate is not None:
            await self._send_gate.wait()

        failure = self._failures.pop(0) if self._failures else None
        if failure is None or failure[2]:
            client_message_id = body.get("client_message_id")
            if not any(
                m["client_message_id"] == client_message_id for m in self.messages
            ):
                self.add(body.get("content", ""), ME, client_message_id)

        if failure is None:
            response = httpx.Response(200, json={"messages": self.messages})
            if self._hold_responses:
                gate = asyncio.Event()
                self.held_responses.append(gate)
                await gate.wait()
            return response
        error, error_code, _ = failure
        if isinstance(error, Exception):
            raise error
        if isinstance(error, httpx.Response):
            return error
        return httpx.Response(error, json={"error": "Send failed", "error_code": error_code})

    def _get(self, path: str) -> dict:
        message_id = int(path.rstrip("/").split("/messages/")[1].split("/")[0])
        return next(m for m in self.messages if m["id"] == message_id)


@pytest.fixture
def server():
    return FakeChatServer()


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def client(server):
    async with GatewayClient(
        "https://chat.test", "token-abc", transport=httpx.MockTransport(server)
    ) as client:
        yield client


@pytest.fixture
def engine(client, clock):
    counter = itertools.count(1)
    return ConversationSyncEngine(
        client,
        conversation_id=CONVERSATION_ID,
        user_id=ME,
        temp_id_factory=lambda: f"tmp-{next(counter)}",
        typing_tracker=TypingTracker(clock=clock),
    )
