from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache

from sqlalchemy import DateTime, Engine, Integer, String, create_engine, select
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .config import Settings

logger = logging.getLogger(__name__)

# SQLSTATE for unique_violation (Postgres and most DB-API drivers)
UNIQUE_VIOLATION = "23505"


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class Subscriber(Base):
    __tablename__ = "subscribers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone_number: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


# --- Engine & Session factory ---


def connection_url(database_url: str, database_key: str) -> URL:
    """
    DATABASE_KEY is applied as the connection password; SQLite has no
    credentials so there it only has to be present.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return url
    return url.set(password=database_key)


def build_engine(database_url: str, database_key: str) -> Engine:
    url = connection_url(database_url, database_key)
    if url.get_backend_name() == "sqlite":
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


@lru_cache
def get_engine(database_url: str, database_key: str) -> Engine:
    # One engine (and connection pool) per configured database
    return build_engine(database_url, database_key)


def get_subscriber_store(settings: Settings) -> SubscriberStore:
    if not settings.record_store_configured:
        raise RuntimeError("Record store is not configured (DATABASE_URL / DATABASE_KEY)")
    engine = get_engine(settings.database_url, settings.database_key)  # type: ignore[arg-type]
    return SubscriberStore.from_engine(engine)


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist."""
    Base.metadata.create_all(bind=engine)


# --- Results ---


@dataclass(frozen=True)
class LookupResult:
    found: bool
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class InsertOutcome(enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(frozen=True)
class InsertResult:
    outcome: InsertOutcome
    error: Exception | None = None


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == UNIQUE_VIOLATION:
        return True
    # sqlite3 carries no SQLSTATE
    return "UNIQUE constraint failed" in str(orig)


# --- Store ---


class SubscriberStore:
    """
    Lookup / insert of subscribers by phone number.

    Database exceptions never leave this class; each call returns a result
    describing what happened so callers can pick the right reply.

    Lookup and insert are separate transactions. Two concurrent first-time
    subscribes for the same number both see "not found"; the unique
    constraint on phone_number lets exactly one insert through and the
    other comes back as DUPLICATE.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: Engine) -> SubscriberStore:
        return cls(sessionmaker(bind=engine, autoflush=False, autocommit=False))

    def lookup(self, phone: str) -> LookupResult:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(Subscriber.phone_number)
                    .where(Subscriber.phone_number == phone)
                    .limit(1)
                ).first()
        except SQLAlchemyError as exc:
            return LookupResult(found=False, error=exc)
        return LookupResult(found=row is not None)

    def insert(self, phone: str) -> InsertResult:
        try:
            with self._session_factory() as session, session.begin():
                session.add(Subscriber(phone_number=phone))
        except IntegrityError as exc:
            if is_unique_violation(exc):
                return InsertResult(InsertOutcome.DUPLICATE, exc)
            return InsertResult(InsertOutcome.FAILED, exc)
        except SQLAlchemyError as exc:
            return InsertResult(InsertOutcome.FAILED, exc)
        logger.info("Subscribed %s", phone)
        return InsertResult(InsertOutcome.INSERTED)
