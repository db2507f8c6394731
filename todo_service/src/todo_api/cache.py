"""
Key/value cache used as a read-through cache in front of the todo store.

Values are stored as JSON text. Every backend fails soft: a failed read is a
miss, a failed write or delete is logged and dropped, so the cache can never
fail a store operation that succeeded.
"""
from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Callable, Dict, Optional, Tuple

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def todo_key(todo_id: int) -> str:
    """Cache key for a single todo snapshot."""
    return f"todo:{todo_id}"


# PUBLIC_INTERFACE
def user_todos_key(user_id: int) -> str:
    """Cache key for a user's ordered todo list."""
    return f"user:{user_id}:todos"


# PUBLIC_INTERFACE
class Cache(ABC):
    """Abstract cache contract."""

    def connect(self) -> bool:
        """Open the backend connection. Returns False (never raises) when it is unreachable."""
        return True

    def close(self) -> None:
        """Release the backend connection."""

    def ping(self) -> bool:
        return True

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the decoded value for `key`, or None on a miss or any backend error."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store `value` (JSON-serializable) under `key`, expiring after `ttl_seconds` if given."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove `key` if present."""


class RedisCache(Cache):
    """
    Redis-backed cache holding one client (and its connection pool) for the
    process lifetime.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        socket_timeout: int = 2,
        client: Optional[redis.Redis] = None,
    ) -> None:
        self._address = f"{host}:{port}"
        self._client = client or redis.Redis(
            host=host,
            port=port,
            password=password,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    def connect(self) -> bool:
        try:
            self._client.ping()
        except RedisError as e:
            logger.error(f"Failed to connect to Redis at {self._address}: {e}")
            return False
        logger.info(f"Connected to Redis at {self._address}")
        return True

    def close(self) -> None:
        try:
            self._client.close()
            logger.info("Disconnected from Redis")
        except RedisError as e:
            logger.error(f"Error disconnecting from Redis: {e}")

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError:
            return False

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self._client.get(key)
        except RedisError as e:
            logger.error(f"Error getting key '{key}' from Redis: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry '{key}'")
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            serialized = json.dumps(value)
            if ttl_seconds:
                self._client.setex(key, ttl_seconds, serialized)
            else:
                self._client.set(key, serialized)
        except (RedisError, TypeError, ValueError) as e:
            logger.error(f"Error setting key '{key}' in Redis: {e}")

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as e:
            logger.error(f"Error deleting key '{key}' from Redis: {e}")


class InMemoryCache(Cache):
    """
    Thread-safe in-process cache with per-entry expiry, for tests and single-process runs.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = RLock()
        self._entries: Dict[str, Tuple[Optional[float], str]] = {}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, raw = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Error serializing cache key '{key}': {e}")
            return
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._entries[key] = (expires_at, serialized)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def close(self) -> None:
        with self._lock:
            self._entries.clear()
