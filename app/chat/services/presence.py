"""
Presence registry and broadcaster.

Presence is ephemeral: which users currently hold at least one connection.
It is never persisted in the database and never used to decide message
delivery. After a restart it is rebuilt as clients reconnect.

Components:
    PresenceRegistry: Interface with explicit add/remove/touch operations
    InMemoryPresenceRegistry: Process-scoped implementation (single worker,
        tests, development)
    RedisPresenceRegistry: Shared implementation over django-redis for
        multi-worker deployments
    PresenceHub: Registry + channel-layer broadcast of presence:update

The active registry is chosen by settings.CHAT_PRESENCE_REGISTRY (dotted
path) and can be replaced at runtime with set_presence_registry(), so call
sites never reference a concrete backend.

Connection counting:
    A user with two open tabs holds two connections. They go offline only
    when the last one disconnects or expires.
    A heartbeat from a user who was expired while still connected brings
    them back online with one connection.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from asgiref.sync import sync_to_async
from channels.layers import get_channel_layer
from django.conf import settings
from django.utils.module_loading import import_string

from chat.constants import PRESENCE_CONFIG
from chat.services.signals import presence_event

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class PresenceRegistry(ABC):
    """
    Online-user set keyed by user id.

    add/remove return True when the user's online state actually changed,
    which tells the caller whether a broadcast is needed.
    """

    @abstractmethod
    def add(self, user_id: int) -> bool:
        """Register a connection. True if the user just came online."""

    @abstractmethod
    def remove(self, user_id: int) -> bool:
        """Drop a connection. True if the user just went offline."""

    @abstractmethod
    def touch(self, user_id: int) -> bool:
        """
        Refresh the user's last-seen instant (heartbeat).

        A user already expired by expire_stale() is registered again with
        one connection. True if the user just came back online.
        """

    @abstractmethod
    def online_user_ids(self) -> list[int]:
        """Ids of users with at least one live connection, ascending."""

    @abstractmethod
    def expire_stale(self, max_age_seconds: float) -> list[int]:
        """Drop users not seen for ``max_age_seconds``; return their ids."""

    @abstractmethod
    def clear(self) -> None:
        """Forget everything."""

    def is_online(self, user_id: int) -> bool:
        return user_id in self.online_user_ids()


class InMemoryPresenceRegistry(PresenceRegistry):
    """
    Process-scoped registry guarded by a lock.

    Args:
        clock: Callable returning seconds; injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._connections: dict[int, int] = {}
        self._last_seen: dict[int, float] = {}

    def add(self, user_id: int) -> bool:
        with self._lock:
            count = self._connections.get(user_id, 0)
            self._connections[user_id] = count + 1
            self._last_seen[user_id] = self._clock()
            return count == 0

    def remove(self, user_id: int) -> bool:
        with self._lock:
            count = self._connections.get(user_id, 0)
            if count <= 1:
                was_online = count > 0
                self._connections.pop(user_id, None)
                self._last_seen.pop(user_id, None)
                return was_online
            self._connections[user_id] = count - 1
            return False

    def touch(self, user_id: int) -> bool:
        with self._lock:
            self._last_seen[user_id] = self._clock()
            if user_id in self._connections:
                return False
            self._connections[user_id] = 1
            return True

    def online_user_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._connections)

    def expire_stale(self, max_age_seconds: float) -> list[int]:
        cutoff = self._clock() - max_age_seconds
        with self._lock:
            stale = [uid for uid, seen in self._last_seen.items() if seen < cutoff]
            for user_id in stale:
                self._connections.pop(user_id, None)
                self._last_seen.pop(user_id, None)
        return sorted(stale)

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()
            self._last_seen.clear()


class RedisPresenceRegistry(PresenceRegistry):
    """
    Registry shared by all workers through Redis.

    Layout:
        REDIS_ONLINE_KEY       sorted set  user_id -> last seen (unix seconds)
        REDIS_CONNECTIONS_KEY  hash        user_id -> open connection count

    Every operation touching both keys runs as one Lua script, so a tab
    connecting while another disconnects can never leave the two keys out
    of step.

    Args:
        alias: django-redis cache alias to take the connection from
        clock: Callable returning unix seconds; injectable for tests
        client: Redis client to use instead of the alias connection
    """

    # Keys: [online_key, connections_key]
    # Args: [user_id, now]
    LUA_ADD = """
    local count = redis.call('HINCRBY', KEYS[2], ARGV[1], 1)
    redis.call('ZADD', KEYS[1], ARGV[2], ARGV[1])
    return count
    """

    # Keys: [online_key, connections_key]
    # Args: [user_id]
    LUA_REMOVE = """
    local count = redis.call('HINCRBY', KEYS[2], ARGV[1], -1)
    if count > 0 then
        return 0
    end
    redis.call('HDEL', KEYS[2], ARGV[1])
    return redis.call('ZREM', KEYS[1], ARGV[1])
    """

    # Keys: [online_key, connections_key]
    # Args: [user_id, now]
    LUA_TOUCH = """
    local seen = redis.call('ZSCORE', KEYS[1], ARGV[1])
    redis.call('ZADD', KEYS[1], ARGV[2], ARGV[1])
    if seen then
        return 0
    end
    redis.call('HSET', KEYS[2], ARGV[1], 1)
    return 1
    """

    # Keys: [online_key, connections_key]
    # Args: [cutoff]
    LUA_EXPIRE = """
    local stale = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', ARGV[1])
    for _, member in ipairs(stale) do
        redis.call('ZREM', KEYS[1], member)
        redis.call('HDEL', KEYS[2], member)
    end
    return stale
    """

    def __init__(
        self,
        alias: str = "default",
        clock: Callable[[], float] = time.time,
        client=None,
    ):
        self._alias = alias
        self._clock = clock
        self._client = client
        self._scripts = {}
        self.online_key = PRESENCE_CONFIG.REDIS_ONLINE_KEY
        self.connections_key = PRESENCE_CONFIG.REDIS_CONNECTIONS_KEY

    @property
    def client(self):
        if self._client is None:
            from django_redis import get_redis_connection

            self._client = get_redis_connection(self._alias)
        return self._client

    def _run(self, source: str, *args):
        """Run a registered Lua script against both presence keys."""
        script = self._scripts.get(source)
        if script is None:
            script = self._scripts[source] = self.client.register_script(source)
        return script(keys=[self.online_key, self.connections_key], args=list(args))

    def add(self, user_id: int) -> bool:
        return int(self._run(self.LUA_ADD, user_id, self._clock())) == 1

    def remove(self, user_id: int) -> bool:
        return bool(self._run(self.LUA_REMOVE, user_id))

    def touch(self, user_id: int) -> bool:
        return bool(self._run(self.LUA_TOUCH, user_id, self._clock()))

    def online_user_ids(self) -> list[int]:
        return sorted(int(member) for member in self.client.zrange(self.online_key, 0, -1))

    def expire_stale(self, max_age_seconds: float) -> list[int]:
        cutoff = self._clock() - max_age_seconds
        return sorted(int(member) for member in self._run(self.LUA_EXPIRE, cutoff))

    def clear(self) -> None:
        self.client.delete(self.online_key, self.connections_key)


_registry: PresenceRegistry | None = None
_registry_lock = threading.Lock()


def get_presence_registry() -> PresenceRegistry:
    """
    Return the process-wide registry, building it from settings on first use.

    settings.CHAT_PRESENCE_REGISTRY holds the dotted path of the class.
    """
    global _registry
    with _registry_lock:
        if _registry is None:
            path = getattr(
                settings,
                "CHAT_PRESENCE_REGISTRY",
                "chat.services.presence.InMemoryPresenceRegistry",
            )
            _registry = import_string(path)()
            logger.info(f"Presence registry initialized: {path}")
        return _registry


def set_presence_registry(registry: PresenceRegistry | None) -> None:
    """Replace the registry (None resets to the configured default)."""
    global _registry
    with _registry_lock:
        _registry = registry


class PresenceHub:
    """
    Presence operations plus broadcast.

    Every change of the online set is followed by a presence:update to the
    ``presence`` group, which all authenticated connections join.

    Args:
        registry: PresenceRegistry to use; defaults to the configured one
        channel_layer: Channels layer; defaults to the configured one
    """

    def __init__(self, registry: PresenceRegistry | None = None, channel_layer=None):
        self._registry = registry
        self._channel_layer = channel_layer

    @property
    def registry(self) -> PresenceRegistry:
        return self._registry or get_presence_registry()

    @property
    def channel_layer(self):
        return self._channel_layer or get_channel_layer()

    def connect(self, user_id: int) -> bool:
        changed = self.registry.add(user_id)
        logger.debug(f"User {user_id} connected (came online: {changed})")
        return changed

    def disconnect(self, user_id: int) -> bool:
        changed = self.registry.remove(user_id)
        logger.debug(f"User {user_id} disconnected (went offline: {changed})")
        return changed

    def heartbeat(self, user_id: int) -> bool:
        """
        Keep a live connection's user online.

        Returns:
            True if the user had been expired and is back online, in which
            case the caller should broadcast
        """
        restored = self.registry.touch(user_id)
        if restored:
            logger.info(f"User {user_id} restored to presence by heartbeat")
        return restored

    def online_user_ids(self) -> list[int]:
        return self.registry.online_user_ids()

    async def broadcast(self) -> None:
        """Send the current online set to every connected client."""
        layer = self.channel_layer
        if layer is None:
            return
        online = await sync_to_async(self.online_user_ids)()
        await layer.group_send(PRESENCE_CONFIG.PRESENCE_GROUP, presence_event(online))

    def sweep(self, max_age_seconds: float | None = None) -> list[int]:
        """
        Expire users whose heartbeat is older than the presence TTL.

        Returns:
            Ids that were expired
        """
        if max_age_seconds is None:
            max_age_seconds = getattr(
                settings,
                "CHAT_PRESENCE_TTL_SECONDS",
                PRESENCE_CONFIG.PRESENCE_TTL_SECONDS,
            )
        expired = self.registry.expire_stale(max_age_seconds)
        if expired:
            logger.info(f"Expired stale presence for users {expired}")
        return expired
