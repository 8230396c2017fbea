"""TTL cache used for throttle bookkeeping.

Both backends expose the same interface:

  fetch_or_compute(key, ttl, compute) -> (value, computed)
      Atomic per key. When no live entry exists, exactly one caller runs
      ``compute`` and stores its result for ``ttl``; concurrent callers get the
      stored (or in-flight) value back with ``computed=False``.
  write(key, value, ttl)
  read(key) -> value | None
  delete(key)

Redis implementation:
  1. ``SET key <pending> NX PX ttl`` decides the winner across processes.
  2. The winner runs ``compute`` and replaces the marker with its result
     (``XX KEEPTTL``, so the expiry set by the claim still applies).
  3. If ``compute`` raises, the marker is removed so a later attempt can retry.

Unlike the job queue there is no in-memory fallback when Redis goes away: an
unreachable cache raises ``CacheUnavailable`` so throttled jobs are never
admitted unthrottled.
"""
from __future__ import annotations

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Optional, Protocol, TypeVar

import redis

from jobtracker.config import CACHE_SETTINGS, TRACKER_SETTINGS
from jobtracker.jobs.exceptions import CacheUnavailable
from jobtracker.utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

PENDING = "__pending__"


def ttl_to_ms(ttl: timedelta) -> int:
    """Whole milliseconds, clamped to the configured minimum."""
    minimum = int(TRACKER_SETTINGS.get("min_ttl_ms", 1))  # type: ignore[arg-type]
    return max(ttl // timedelta(milliseconds=1), minimum)


class TTLCache(Protocol):
    backend: str

    def fetch_or_compute(self, key: str, ttl: timedelta, compute: Callable[[], T]) -> tuple[Any, bool]: ...
    def write(self, key: str, value: Any, ttl: timedelta) -> None: ...
    def read(self, key: str) -> Any: ...
    def delete(self, key: str) -> None: ...
    def health_check(self) -> bool: ...


class InMemoryTTLCache:
    """Process-local cache; atomic per key through a fixed set of lock stripes."""

    backend = "memory"
    LOCK_STRIPES = 64

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._locks = tuple(threading.Lock() for _ in range(self.LOCK_STRIPES))

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def _live(self, key: str) -> Optional[tuple[Any, float]]:
        entry = self._entries.get(key)
        if entry is not None and entry[1] <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _expiry(self, ttl: timedelta) -> float:
        return self._clock() + ttl_to_ms(ttl) / 1000.0

    def fetch_or_compute(self, key: str, ttl: timedelta, compute: Callable[[], T]) -> tuple[Any, bool]:
        with self._lock_for(key):
            entry = self._live(key)
            if entry is not None:
                return entry[0], False
            value = compute()
            self._entries[key] = (value, self._expiry(ttl))
            return value, True

    def write(self, key: str, value: Any, ttl: timedelta) -> None:
        with self._lock_for(key):
            self._entries[key] = (value, self._expiry(ttl))

    def read(self, key: str) -> Any:
        with self._lock_for(key):
            entry = self._live(key)
            return entry[0] if entry is not None else None

    def delete(self, key: str) -> None:
        with self._lock_for(key):
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry (for testing)."""
        for lock in self._locks:
            lock.acquire()
        try:
            self._entries.clear()
        finally:
            for lock in self._locks:
                lock.release()

    def health_check(self) -> bool:
        return True


class RedisTTLCache:
    """Cross-process cache backed by Redis ``SET NX PX``."""

    backend = "redis"

    def __init__(self, client: Optional[redis.Redis] = None, *, key_prefix: Optional[str] = None) -> None:
        self._redis_url = str(CACHE_SETTINGS.get("redis_url", "redis://localhost:6379/0"))
        self._prefix = str(key_prefix if key_prefix is not None else CACHE_SETTINGS.get("key_prefix", ""))
        if client is None:
            timeout = float(CACHE_SETTINGS.get("socket_timeout", 2.0))  # type: ignore[arg-type]
            client = redis.from_url(self._redis_url, socket_timeout=timeout, socket_connect_timeout=timeout)
        self._client = client

    def _name(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @staticmethod
    def _decode(value: Any) -> Any:
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def _unavailable(self, operation: str, key: str, error: Exception) -> CacheUnavailable:
        logger.error("Redis cache unavailable", operation=operation, key=key, error=str(error))
        return CacheUnavailable(f"TTL cache unavailable during {operation} for {key!r}", cause=error)

    def fetch_or_compute(self, key: str, ttl: timedelta, compute: Callable[[], T]) -> tuple[Any, bool]:
        name = self._name(key)
        ttl_ms = ttl_to_ms(ttl)
        try:
            acquired = self._client.set(name, PENDING, nx=True, px=ttl_ms)
            if not acquired:
                return self._decode(self._client.get(name)), False
        except redis.RedisError as e:
            raise self._unavailable("fetch_or_compute", key, e) from e

        try:
            value = compute()
        except Exception:
            try:
                self._client.delete(name)
            except redis.RedisError as e:
                logger.warning("Failed to release pending cache marker", key=key, error=str(e))
            raise

        try:
            self._client.set(name, str(value), xx=True, keepttl=True)
        except redis.RedisError as e:
            # The pending marker still holds the key for the full TTL.
            logger.warning("Failed to store computed cache value", key=key, error=str(e))
        return value, True

    def write(self, key: str, value: Any, ttl: timedelta) -> None:
        try:
            self._client.set(self._name(key), str(value), px=ttl_to_ms(ttl))
        except redis.RedisError as e:
            raise self._unavailable("write", key, e) from e

    def read(self, key: str) -> Any:
        try:
            return self._decode(self._client.get(self._name(key)))
        except redis.RedisError as e:
            raise self._unavailable("read", key, e) from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._name(key))
        except redis.RedisError as e:
            raise self._unavailable("delete", key, e) from e

    def health_check(self) -> bool:
        try:
            return bool(self._client.ping())
        except (redis.RedisError, ConnectionError) as e:
            logger.warning("Redis cache health check failed", error=str(e))
            return False


def create_cache() -> TTLCache:
    """Create the TTL cache selected by ``CACHE_SETTINGS["backend"]``."""
    backend = str(CACHE_SETTINGS.get("backend", "memory")).lower()
    if backend == "memory":
        logger.info("Using in-memory TTL cache")
        return InMemoryTTLCache()
    if backend != "redis":
        raise ValueError(f"Unknown cache backend '{backend}'")

    cache = RedisTTLCache()
    try:
        cache._client.ping()
    except (redis.RedisError, ConnectionError) as e:
        raise CacheUnavailable(f"Redis cache unreachable at {cache._redis_url}", cause=e) from e
    logger.info("Using Redis TTL cache", url=cache._redis_url)
    return cache


__all__ = ["TTLCache", "InMemoryTTLCache", "RedisTTLCache", "create_cache", "ttl_to_ms", "PENDING"]
