# backend/groombook/services/booking/locks.py
"""
Day-level exclusivity for reservations.

Every reservation for a business day serializes on one lock for that
day, held from the capacity re-check until commit/rollback.

Backends:
- RowSlotLock: SELECT ... FOR UPDATE on booking_day_locks (PostgreSQL);
  BEGIN IMMEDIATE on SQLite, which holds the whole-file write lock
- RedisSlotLock: redis-py Lock, for several app processes on one store
- LocalSlotLock: in-process locks, single worker / tests

Acquisition is bounded by lock_timeout_seconds → LockTimeout.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date
from functools import lru_cache
from typing import Iterator

from redis import Redis
from redis.exceptions import LockError
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ...database import SQLITE_WRITE_LOCK_OPTION
from .config import BookingConfig, get_booking_config
from .errors import LockTimeout

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for lock_not_available
PG_LOCK_NOT_AVAILABLE = "55P03"


def lock_key(lock_date: date) -> str:
    return f"booking:lock:{lock_date.isoformat()}"


class LocalSlotLock:
    """Per-day threading locks, valid within one process."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextmanager
    def hold(self, db: Session, lock_date: date) -> Iterator[None]:
        key = lock_key(lock_date)
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.timeout_seconds):
            raise LockTimeout(f"Timed out waiting for {key}")
        try:
            yield
        finally:
            lock.release()


class RedisSlotLock:
    """Distributed per-day lock; ttl bounds how long a dead worker holds it."""

    def __init__(self, redis: Redis, timeout_seconds: float, ttl_seconds: float = 30.0):
        self.redis = redis
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = ttl_seconds

    @contextmanager
    def hold(self, db: Session, lock_date: date) -> Iterator[None]:
        key = lock_key(lock_date)
        lock = self.redis.lock(
            key,
            timeout=self.ttl_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        if not lock.acquire():
            raise LockTimeout(f"Timed out waiting for {key}")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning(f"Lock {key} expired before release")


class RowSlotLock:
    """
    Row lock on booking_day_locks, released by the caller's commit/rollback.

    SQLite has no row locks: the transaction is opened with BEGIN IMMEDIATE
    instead, which takes the database write lock and so serializes every
    process writing to the same file. Must be entered at the start of a
    transaction.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds

    @contextmanager
    def hold(self, db: Session, lock_date: date) -> Iterator[None]:
        dialect = db.get_bind().dialect.name
        if dialect == "sqlite":
            try:
                db.connection(execution_options={SQLITE_WRITE_LOCK_OPTION: self.timeout_seconds})
            except OperationalError as e:
                if _is_sqlite_busy(e):
                    raise LockTimeout(f"Timed out waiting for {lock_key(lock_date)}") from e
                raise
            yield
            return

        try:
            if dialect == "postgresql":
                timeout_ms = int(self.timeout_seconds * 1000)
                db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            _ensure_lock_row(db, lock_date)
            _select_for_update(db, lock_date)
        except OperationalError as e:
            if _is_lock_timeout(e):
                raise LockTimeout(f"Timed out waiting for {lock_key(lock_date)}") from e
            raise

        yield


def _ensure_lock_row(db: Session, lock_date: date) -> None:
    from ...models import BookingDayLocks

    if db.get(BookingDayLocks, lock_date) is not None:
        return
    try:
        with db.begin_nested():
            db.add(BookingDayLocks(lock_date=lock_date))
    except IntegrityError:
        # Another transaction created it first
        pass


def _select_for_update(db: Session, lock_date: date) -> None:
    from ...models import BookingDayLocks

    db.execute(
        select(BookingDayLocks)
        .where(BookingDayLocks.lock_date == lock_date)
        .with_for_update()
    ).scalar_one()


def _is_lock_timeout(error: OperationalError) -> bool:
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == PG_LOCK_NOT_AVAILABLE


def _is_sqlite_busy(error: OperationalError) -> bool:
    orig = error.orig
    if getattr(orig, "sqlite_errorname", None) == "SQLITE_BUSY":
        return True
    return "database is locked" in str(orig)


def build_slot_lock(config: BookingConfig, redis: Redis | None = None):
    if config.lock_backend == "redis":
        if redis is None:
            from ...redis_client import redis_client
            redis = redis_client
        return RedisSlotLock(redis, config.lock_timeout_seconds)
    if config.lock_backend == "local":
        return LocalSlotLock(config.lock_timeout_seconds)
    return RowSlotLock(config.lock_timeout_seconds)


@lru_cache
def get_slot_lock():
    """Process-wide lock instance for the configured backend."""
    return build_slot_lock(get_booking_config())
