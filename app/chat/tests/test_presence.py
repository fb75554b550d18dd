"""
Tests for presence registries and PresenceHub.

Covers:
- InMemoryPresenceRegistry: Connection counting, heartbeats, stale expiry
- RedisPresenceRegistry: Lua-scripted operations against a fake client, and
  against a real server when REDIS_TEST_URL is set
- get_presence_registry / set_presence_registry: Settings-driven selection
- PresenceHub: Broadcast payload over the channel layer, sweep defaults
"""

import os
from unittest import mock

import pytest
from asgiref.sync import async_to_sync
from django.test import override_settings

from chat.constants import PRESENCE_CONFIG
from chat.services.presence import (
    InMemoryPresenceRegistry,
    PresenceHub,
    RedisPresenceRegistry,
    get_presence_registry,
    set_presence_registry,
)


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return InMemoryPresenceRegistry(clock=clock)


class TestInMemoryRegistry:
    def test_first_connection_brings_user_online(self, registry):
        assert registry.add(7) is True
        assert registry.online_user_ids() == [7]
        assert registry.is_online(7)

    def test_second_tab_does_not_change_state(self, registry):
        registry.add(7)

        assert registry.add(7) is False

    def test_user_stays_online_until_last_connection_closes(self, registry):
        """
        Given a user with two open tabs
        When one tab closes
        Then the user is still online until the second closes too
        """
        registry.add(7)
        registry.add(7)

        assert registry.remove(7) is False
        assert registry.online_user_ids() == [7]
        assert registry.remove(7) is True
        assert registry.online_user_ids() == []

    def test_remove_unknown_user_is_noop(self, registry):
        assert registry.remove(42) is False

    def test_online_ids_sorted(self, registry):
        for user_id in (9, 2, 5):
            registry.add(user_id)

        assert registry.online_user_ids() == [2, 5, 9]

    def test_expire_stale_drops_silent_users(self, registry, clock):
        registry.add(1)
        registry.add(2)
        clock.now += 60
        registry.touch(2)
        clock.now += 40

        expired = registry.expire_stale(90)

        assert expired == [1]
        assert registry.online_user_ids() == [2]

    def test_touch_refreshes_without_state_change(self, registry):
        registry.add(3)

        assert registry.touch(3) is False
        assert registry.online_user_ids() == [3]

    def test_touch_restores_expired_user(self, registry, clock):
        """
        Given a user expired while their socket stayed open
        When that socket heartbeats
        Then the user is back online with one connection
        """
        registry.add(3)
        clock.now += 120
        assert registry.expire_stale(90) == [3]

        assert registry.touch(3) is True
        assert registry.online_user_ids() == [3]
        assert registry.remove(3) is True

    def test_clear(self, registry):
        registry.add(1)

        registry.clear()

        assert registry.online_user_ids() == []


class FakeRedis:
    """
    Just enough of a Redis client for RedisPresenceRegistry.

    Each registered Lua script is replaced by a Python equivalent picked by
    its source. Members are stored as strings and returned as bytes, like
    a real server.
    """

    def __init__(self):
        self.sorted_sets = {}
        self.hashes = {}
        self.registered = []

    def register_script(self, source):
        self.registered.append(source)
        handler = {
            RedisPresenceRegistry.LUA_ADD: self._add,
            RedisPresenceRegistry.LUA_REMOVE: self._remove,
            RedisPresenceRegistry.LUA_TOUCH: self._touch,
            RedisPresenceRegistry.LUA_EXPIRE: self._expire,
        }[source]

        def run(keys, args):
            return handler(*keys, *args)

        return run

    def zrange(self, key, start, end):
        members = sorted(self.sorted_sets.get(key, {}).items(), key=lambda kv: kv[1])
        return [member.encode() for member, _ in members]

    def delete(self, *keys):
        for key in keys:
            self.sorted_sets.pop(key, None)
            self.hashes.pop(key, None)

    def _add(self, online_key, connections_key, user_id, now):
        counts = self.hashes.setdefault(connections_key, {})
        member = str(user_id)
        counts[member] = counts.get(member, 0) + 1
        self.sorted_sets.setdefault(online_key, {})[member] = float(now)
        return counts[member]

    def _remove(self, online_key, connections_key, user_id):
        counts = self.hashes.setdefault(connections_key, {})
        member = str(user_id)
        counts[member] = counts.get(member, 0) - 1
        if counts[member] > 0:
            return 0
        del counts[member]
        return int(self.sorted_sets.get(online_key, {}).pop(member, None) is not None)

    def _touch(self, online_key, connections_key, user_id, now):
        scores = self.sorted_sets.setdefault(online_key, {})
        member = str(user_id)
        seen = member in scores
        scores[member] = float(now)
        if seen:
            return 0
        self.hashes.setdefault(connections_key, {})[member] = 1
        return 1

    def _expire(self, online_key, connections_key, cutoff):
        scores = self.sorted_sets.get(online_key, {})
        counts = self.hashes.get(connections_key, {})
        stale = [m for m, score in scores.items() if score <= float(cutoff)]
        for member in stale:
            scores.pop(member)
            counts.pop(member, None)
        return [member.encode() for member in stale]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_registry(fake_redis, clock):
    return RedisPresenceRegistry(clock=clock, client=fake_redis)


class TestRedisRegistry:
    def test_connection_counting(self, redis_registry):
        assert redis_registry.add(7) is True
        assert redis_registry.add(7) is False
        assert redis_registry.remove(7) is False
        assert redis_registry.online_user_ids() == [7]
        assert redis_registry.remove(7) is True
        assert redis_registry.online_user_ids() == []

    def test_remove_unknown_user_is_noop(self, redis_registry, fake_redis):
        assert redis_registry.remove(42) is False
        assert fake_redis.hashes[PRESENCE_CONFIG.REDIS_CONNECTIONS_KEY] == {}

    def test_online_ids_are_ints_sorted(self, redis_registry, clock):
        for user_id in (9, 2, 5):
            clock.now += 1
            redis_registry.add(user_id)

        assert redis_registry.online_user_ids() == [2, 5, 9]

    def test_scripts_registered_once(self, redis_registry, fake_redis):
        redis_registry.add(1)
        redis_registry.add(2)
        redis_registry.remove(1)
        redis_registry.remove(2)

        assert fake_redis.registered == [
            RedisPresenceRegistry.LUA_ADD,
            RedisPresenceRegistry.LUA_REMOVE,
        ]

    def test_expire_then_heartbeat_restores(self, redis_registry, clock):
        """
        Given two users where only one keeps heartbeating
        When stale users are expired and the silent one heartbeats later
        Then only the silent one is expired and the heartbeat restores them
        """
        redis_registry.add(1)
        redis_registry.add(2)
        clock.now += 60
        assert redis_registry.touch(2) is False
        clock.now += 40

        assert redis_registry.expire_stale(90) == [1]
        assert redis_registry.online_user_ids() == [2]

        assert redis_registry.touch(1) is True
        assert redis_registry.online_user_ids() == [1, 2]
        assert redis_registry.remove(1) is True

    def test_clear(self, redis_registry):
        redis_registry.add(1)

        redis_registry.clear()

        assert redis_registry.online_user_ids() == []

    def test_connection_comes_from_cache_alias(self, clock):
        registry = RedisPresenceRegistry(alias="presence", clock=clock)
        client = FakeRedis()

        with mock.patch(
            "django_redis.get_redis_connection", return_value=client
        ) as get_connection:
            registry.add(3)
            registry.add(4)

        get_connection.assert_called_once_with("presence")
        assert registry.online_user_ids() == [3, 4]


@pytest.mark.skipif(
    not os.environ.get("REDIS_TEST_URL"),
    reason="REDIS_TEST_URL not set",
)
class TestRedisRegistryAgainstServer:
    """Runs the Lua scripts on a real Redis server."""

    @pytest.fixture
    def live_registry(self, settings, clock):
        settings.CACHES = {
            **settings.CACHES,
            "presence_test": {
                "BACKEND": "django_redis.cache.RedisCache",
                "LOCATION": os.environ["REDIS_TEST_URL"],
            },
        }
        registry = RedisPresenceRegistry(alias="presence_test", clock=clock)
        registry.clear()
        yield registry
        registry.clear()

    def test_multi_tab_lifecycle(self, live_registry):
        assert live_registry.add(7) is True
        assert live_registry.add(7) is False
        assert live_registry.remove(7) is False
        assert live_registry.is_online(7)
        assert live_registry.remove(7) is True
        assert live_registry.online_user_ids() == []

    def test_expire_then_heartbeat_restores(self, live_registry, clock):
        live_registry.add(1)
        live_registry.add(2)
        clock.now += 60
        live_registry.touch(2)
        clock.now += 40

        assert live_registry.expire_stale(90) == [1]
        assert live_registry.touch(1) is True
        assert live_registry.online_user_ids() == [1, 2]


class TestRegistrySelection:
    def test_default_comes_from_settings(self):
        set_presence_registry(None)

        assert isinstance(get_presence_registry(), InMemoryPresenceRegistry)

    def test_same_instance_is_reused(self):
        assert get_presence_registry() is get_presence_registry()

    @override_settings(CHAT_PRESENCE_REGISTRY="chat.tests.test_presence.FakeRegistry")
    def test_dotted_path_is_imported(self):
        set_presence_registry(None)

        assert isinstance(get_presence_registry(), FakeRegistry)

    def test_set_replaces_registry(self, registry):
        set_presence_registry(registry)

        assert get_presence_registry() is registry


class FakeRegistry(InMemoryPresenceRegistry):
    pass


class TestPresenceHub:
    def test_connect_and_disconnect_report_changes(self, registry):
        hub = PresenceHub(registry=registry)

        assert hub.connect(5) is True
        assert hub.connect(5) is False
        assert hub.disconnect(5) is False
        assert hub.disconnect(5) is True

    def test_heartbeat_keeps_user_alive(self, registry, clock):
        hub = PresenceHub(registry=registry)
        hub.connect(5)
        clock.now += 80
        hub.heartbeat(5)
        clock.now += 80

        assert hub.sweep(90) == []
        assert hub.online_user_ids() == [5]

    def test_heartbeat_after_sweep_brings_user_back(self, registry, clock):
        hub = PresenceHub(registry=registry)
        hub.connect(5)
        clock.now += 120
        assert hub.sweep(90) == [5]

        assert hub.heartbeat(5) is True
        assert hub.online_user_ids() == [5]
        assert hub.heartbeat(5) is False

    @override_settings(CHAT_PRESENCE_TTL_SECONDS=30)
    def test_sweep_uses_configured_ttl(self, registry, clock):
        hub = PresenceHub(registry=registry)
        hub.connect(5)
        clock.now += 31

        assert hub.sweep() == [5]

    def test_broadcast_sends_sorted_online_ids_to_presence_group(self, registry):
        layer = mock.Mock()
        layer.group_send = mock.AsyncMock()
        hub = PresenceHub(registry=registry, channel_layer=layer)
        hub.connect(8)
        hub.connect(3)

        async_to_sync(hub.broadcast)()

        layer.group_send.assert_awaited_once_with(
            PRESENCE_CONFIG.PRESENCE_GROUP,
            {"type": "presence.update", "online_user_ids": [3, 8]},
        )

    def test_uses_process_registry_by_default(self):
        hub = PresenceHub()
        hub.connect(11)

        assert get_presence_registry().online_user_ids() == [11]
