"""
Counter store used for per-sender rate limiting.

Counters are small integers with a TTL; the store owns expiry. Anything that
implements CounterStore can be injected into the rate limiter (tests use an
in-memory fake).
"""

from __future__ import annotations

from typing import Protocol

from redis import Redis


class CounterStore(Protocol):
    def get(self, key: str) -> int | None: ...

    def put(self, key: str, value: int, ttl_seconds: int) -> None: ...


class CounterStoreUnavailable(RuntimeError):
    pass


class UnavailableCounterStore:
    """Stands in when the real store could not be built; every call raises."""

    def __init__(self, reason: Exception) -> None:
        self.reason = reason

    def get(self, key: str) -> int | None:
        raise CounterStoreUnavailable(str(self.reason)) from self.reason

    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        raise CounterStoreUnavailable(str(self.reason)) from self.reason


class RedisCounterStore:
    """CounterStore backed by plain Redis GET / SET EX."""

    def __init__(self, client: Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisCounterStore:
        return cls(Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> int | None:
        raw = self._redis.get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        # SET with EX replaces the TTL, so the window restarts on every write
        self._redis.set(key, str(value), ex=ttl_seconds)
