from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from ootd_sms.config import Settings
from ootd_sms.db import InsertOutcome, InsertResult, LookupResult, SubscriberStore, init_db


class FakeCounterStore:
    """In-memory CounterStore with a manual clock so TTL expiry can be tested."""

    def __init__(self) -> None:
        self.now = 0.0
        self.puts: list[tuple[str, int, int]] = []
        self._data: dict[str, tuple[int, float]] = {}

    def get(self, key: str) -> int | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.now >= expires_at:
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        self.puts.append((key, value, ttl_seconds))
        self._data[key] = (value, self.now + ttl_seconds)

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenCounterStore:
    """CounterStore whose backend is unreachable."""

    def get(self, key: str) -> int | None:
        raise ConnectionError("counter store down")

    def put(self, key: str, value: int, ttl_seconds: int) -> None:
        raise ConnectionError("counter store down")


class FakeSubscriberStore:
    """
    Scriptable stand-in for SubscriberStore.

    Records every call; lookup/insert results can be forced per test.
    """

    def __init__(
        self,
        subscribed: set[str] | None = None,
        lookup_error: Exception | None = None,
        insert_result: InsertResult | None = None,
        raise_on_lookup: Exception | None = None,
    ) -> None:
        self.subscribed = set(subscribed or ())
        self.lookup_error = lookup_error
        self.insert_result = insert_result
        self.raise_on_lookup = raise_on_lookup
        self.lookups: list[str] = []
        self.inserts: list[str] = []

    def lookup(self, phone: str) -> LookupResult:
        self.lookups.append(phone)
        if self.raise_on_lookup is not None:
            raise self.raise_on_lookup
        if self.lookup_error is not None:
            return LookupResult(found=False, error=self.lookup_error)
        return LookupResult(found=phone in self.subscribed)

    def insert(self, phone: str) -> InsertResult:
        self.inserts.append(phone)
        if self.insert_result is not None:
            return self.insert_result
        if phone in self.subscribed:
            return InsertResult(InsertOutcome.DUPLICATE)
        self.subscribed.add(phone)
        return InsertResult(InsertOutcome.INSERTED)


class RecordingFactory:
    """Subscriber store factory that counts how often a store was requested."""

    def __init__(self, store: object) -> None:
        self.store = store
        self.calls = 0

    def __call__(self, settings: Settings) -> SubscriberStore:
        self.calls += 1
        return self.store  # type: ignore[return-value]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        database_key="test-key",
        redis_url="redis://localhost:6379/15",
        rate_limit_max=5,
        rate_limit_window_seconds=60,
    )


@pytest.fixture
def unconfigured_settings() -> Settings:
    return Settings(database_url=None, database_key=None)


@pytest.fixture
def counters() -> FakeCounterStore:
    return FakeCounterStore()


@pytest.fixture
def sqlite_store() -> Iterator[SubscriberStore]:
    """SubscriberStore over a private in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield SubscriberStore.from_engine(engine)
    engine.dispose()
