"""
Cache abstraction for feed and analysis payloads.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production. Both expose single-key get and
set-with-expiry; Redis errors surface as CacheUnavailable.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from backend.errors import CacheUnavailable


class Cache(Protocol):
    """Minimal key-value interface used by the caching services."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...


@dataclass
class InMemoryCache:
    """Dict-backed cache honoring expiry, for testing/dev."""

    clock: Callable[[], float] = time.monotonic
    items: dict[str, tuple[bytes, float]] = field(default_factory=dict)

    def get(self, key: str) -> Optional[bytes]:
        entry = self.items.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.items[key]
            return None
        return value

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.items[key] = (value, self.clock() + ttl_seconds)

    def reset(self) -> None:
        self.items.clear()


@dataclass
class RedisCache:
    """Redis-backed cache using GET and SET EX."""

    url: str
    socket_timeout: float = 5.0

    def __post_init__(self):
        self.client = self._connect()

    def _connect(self) -> redis.Redis:
        return redis.Redis.from_url(
            self.url,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.client.get(key)
        except redis_exceptions.ConnectionError as exc:
            # Managed Redis drops idle connections; reconnect for the next call.
            self.client = self._connect()
            raise CacheUnavailable(str(exc)) from exc
        except redis_exceptions.RedisError as exc:
            raise CacheUnavailable(str(exc)) from exc

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            self.client.set(key, value, ex=ttl_seconds)
        except redis_exceptions.ConnectionError as exc:
            self.client = self._connect()
            raise CacheUnavailable(str(exc)) from exc
        except redis_exceptions.RedisError as exc:
            raise CacheUnavailable(str(exc)) from exc


class _Call:
    def __init__(self):
        self.done = threading.Event()
        self.result = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """
    In-flight request registry keyed by cache key.

    Concurrent callers for the same key share the leader's result (or its
    exception) instead of each issuing the expensive call.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: dict[str, _Call] = {}

    def do(self, key: str, fn: Callable[[], object]):
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = _Call()
                self._calls[key] = call

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            call.result = fn()
            return call.result
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                self._calls.pop(key, None)
            call.done.set()
