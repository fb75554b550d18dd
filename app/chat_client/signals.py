"""
Client-side typing indicator bookkeeping.

The server relays typing:start with an expiresIn hint and never stores
typing state. The client keeps an entry per (conversation, user) and drops
it when typing:stop arrives or the TTL lapses without a refresh.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_TYPING_TTL = 3.0


class TypingTracker:
    """
    Tracks who is typing where.

    A conversation id of None stands for direct peer typing (typing:start
    sent with "to" instead of a conversation).
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TYPING_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._expires: dict[tuple[int | None, int], float] = {}

    def start(
        self, conversation_id: int | None, user_id: int, ttl: float | None = None
    ) -> None:
        self._expires[(conversation_id, user_id)] = self._clock() + (
            self.ttl if ttl is None else ttl
        )

    def stop(self, conversation_id: int | None, user_id: int) -> None:
        self._expires.pop((conversation_id, user_id), None)

    def active(self, conversation_id: int | None) -> list[int]:
        """Sorted ids of users still typing in a conversation."""
        self._prune()
        return sorted(
            user_id for (cid, user_id) in self._expires if cid == conversation_id
        )

    def clear(self) -> None:
        self._expires.clear()

    def _prune(self) -> None:
        now = self._clock()
        for key in [key for key, expires in self._expires.items() if expires <= now]:
            del self._expires[key]
