"""
Tests for chat Celery tasks.
"""

from unittest import mock

from chat.services.presence import InMemoryPresenceRegistry, set_presence_registry
from chat.tasks import sweep_stale_presence


class FakeClock:
    def __init__(self):
        self.now = 500.0

    def __call__(self):
        return self.now


class TestSweepStalePresence:
    def test_expires_silent_users_and_broadcasts(self):
        """
        Given one user silent past the TTL and one that just heartbeated
        When the sweep runs
        Then only the silent user is expired and presence is rebroadcast
        """
        clock = FakeClock()
        registry = InMemoryPresenceRegistry(clock=clock)
        set_presence_registry(registry)
        registry.add(1)
        clock.now += 100
        registry.add(2)

        with mock.patch("chat.services.presence.PresenceHub.broadcast") as broadcast:
            expired = sweep_stale_presence.apply(kwargs={"max_age_seconds": 90}).get()

        assert expired == [1]
        assert registry.online_user_ids() == [2]
        broadcast.assert_awaited_once()

    def test_nothing_to_expire_skips_broadcast(self):
        registry = InMemoryPresenceRegistry()
        set_presence_registry(registry)
        registry.add(3)

        with mock.patch("chat.services.presence.PresenceHub.broadcast") as broadcast:
            expired = sweep_stale_presence.apply().get()

        assert expired == []
        broadcast.assert_not_called()
