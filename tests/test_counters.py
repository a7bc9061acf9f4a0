from __future__ import annotations

from typing import Any

from ootd_sms.counters import RedisCounterStore


class FakeRedis:
    """Records SET calls and serves GETs from a dict (decode_responses style)."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data = dict(data or {})
        self.set_calls: list[tuple[str, str, Any]] = []

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str, ex: Any = None) -> bool:
        self.set_calls.append((key, value, ex))
        self.data[key] = value
        return True


def test_get_missing_key_is_none() -> None:
    store = RedisCounterStore(FakeRedis())  # type: ignore[arg-type]
    assert store.get("ratelimit:+1") is None


def test_get_parses_integer_values() -> None:
    store = RedisCounterStore(FakeRedis({"ratelimit:+1": "3"}))  # type: ignore[arg-type]
    assert store.get("ratelimit:+1") == 3


def test_get_treats_garbage_as_absent() -> None:
    store = RedisCounterStore(FakeRedis({"ratelimit:+1": "lots"}))  # type: ignore[arg-type]
    assert store.get("ratelimit:+1") is None


def test_put_sets_value_with_expiry() -> None:
    client = FakeRedis()
    store = RedisCounterStore(client)  # type: ignore[arg-type]

    store.put("ratelimit:+1", 4, 60)

    assert client.set_calls == [("ratelimit:+1", "4", 60)]
    assert store.get("ratelimit:+1") == 4
