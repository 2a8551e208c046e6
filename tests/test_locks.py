"""Tests for the day-lock backends."""

import threading
from contextlib import contextmanager
from datetime import date
from types import SimpleNamespace

import pytest
from redis.exceptions import LockError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from groombook.database import build_engine
from groombook.models import BookingDayLocks
from groombook.services.booking.config import BookingConfig
from groombook.services.booking.errors import LockTimeout
from groombook.services.booking.locks import (
    LocalSlotLock,
    RedisSlotLock,
    RowSlotLock,
    build_slot_lock,
    lock_key,
)
from tests.conftest import NEXT_MONDAY


class FakeRedisLock:
    def __init__(self, owner, name):
        self.owner = owner
        self.name = name

    def acquire(self):
        if self.name in self.owner.held:
            return False
        self.owner.held.add(self.name)
        return True

    def release(self):
        if self.name not in self.owner.held:
            raise LockError("not owned")
        self.owner.held.discard(self.name)


class FakeRedis:
    """Just enough of redis.Redis.lock() for the lock wrapper."""

    def __init__(self):
        self.held = set()
        self.lock_calls = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.lock_calls.append((name, timeout, blocking_timeout))
        return FakeRedisLock(self, name)


def test_lock_key():
    assert lock_key(date(2026, 3, 9)) == "booking:lock:2026-03-09"


class TestLocalSlotLock:
    def test_times_out_while_held(self):
        lock = LocalSlotLock(0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with lock.hold(None, NEXT_MONDAY):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(5)
        try:
            with pytest.raises(LockTimeout):
                with lock.hold(None, NEXT_MONDAY):
                    pass
        finally:
            release.set()
            thread.join()

    def test_days_are_independent(self):
        lock = LocalSlotLock(0.05)
        with lock.hold(None, NEXT_MONDAY):
            with lock.hold(None, date(2026, 3, 10)):
                pass

    def test_released_after_exception(self):
        lock = LocalSlotLock(0.05)
        with pytest.raises(RuntimeError):
            with lock.hold(None, NEXT_MONDAY):
                raise RuntimeError("boom")
        with lock.hold(None, NEXT_MONDAY):
            pass


class TestRedisSlotLock:
    def test_acquires_with_bounded_wait(self):
        redis = FakeRedis()
        lock = RedisSlotLock(redis, timeout_seconds=2.5, ttl_seconds=30.0)

        with lock.hold(None, NEXT_MONDAY):
            assert "booking:lock:2026-03-09" in redis.held

        assert redis.held == set()
        assert redis.lock_calls == [("booking:lock:2026-03-09", 30.0, 2.5)]

    def test_timeout(self):
        redis = FakeRedis()
        redis.held.add(lock_key(NEXT_MONDAY))
        lock = RedisSlotLock(redis, timeout_seconds=0.1)

        with pytest.raises(LockTimeout):
            with lock.hold(None, NEXT_MONDAY):
                pass

    def test_expired_lock_release_is_logged(self, caplog):
        redis = FakeRedis()
        lock = RedisSlotLock(redis, timeout_seconds=0.1)

        with lock.hold(None, NEXT_MONDAY):
            redis.held.clear()

        assert "expired before release" in caplog.text


class LockNotAvailable(Exception):
    sqlstate = "55P03"


class ConnectionLost(Exception):
    sqlstate = "08006"


class RecordingSession:
    """Stands in for a Session bound to a server database."""

    def __init__(self, dialect="postgresql", row_exists=True, insert_race=False, fail_on_lock=None):
        self.dialect = dialect
        self.row_exists = row_exists
        self.insert_race = insert_race
        self.fail_on_lock = fail_on_lock
        self.statements = []
        self.added = []

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name=self.dialect))

    def execute(self, statement, *args, **kwargs):
        sql = str(statement)
        self.statements.append(sql)
        if self.fail_on_lock is not None and "FOR UPDATE" in sql:
            raise self.fail_on_lock
        return SimpleNamespace(scalar_one=lambda: BookingDayLocks(lock_date=NEXT_MONDAY))

    def get(self, model, key):
        return model(lock_date=key) if self.row_exists else None

    @contextmanager
    def begin_nested(self):
        yield
        if self.insert_race:
            raise IntegrityError("INSERT INTO booking_day_locks", {}, Exception("duplicate key"))

    def add(self, obj):
        self.added.append(obj)


class TestRowSlotLockServer:
    def test_sets_lock_timeout_and_locks_row(self):
        db = RecordingSession()

        with RowSlotLock(2.5).hold(db, NEXT_MONDAY):
            pass

        assert db.statements[0] == "SET LOCAL lock_timeout = '2500ms'"
        assert "booking_day_locks" in db.statements[-1]
        assert "FOR UPDATE" in db.statements[-1]
        assert db.added == []

    def test_creates_missing_row(self):
        db = RecordingSession(row_exists=False)

        with RowSlotLock(1.0).hold(db, NEXT_MONDAY):
            pass

        assert [row.lock_date for row in db.added] == [NEXT_MONDAY]
        assert "FOR UPDATE" in db.statements[-1]

    def test_row_created_concurrently_is_still_locked(self):
        db = RecordingSession(row_exists=False, insert_race=True)

        with RowSlotLock(1.0).hold(db, NEXT_MONDAY):
            pass

        assert "FOR UPDATE" in db.statements[-1]

    def test_lock_not_available_is_timeout(self):
        error = OperationalError("SELECT ... FOR UPDATE", {}, LockNotAvailable("lock timeout"))
        db = RecordingSession(fail_on_lock=error)

        with pytest.raises(LockTimeout):
            with RowSlotLock(1.0).hold(db, NEXT_MONDAY):
                pass

    def test_other_operational_errors_propagate(self):
        error = OperationalError("SELECT ... FOR UPDATE", {}, ConnectionLost("server closed"))
        db = RecordingSession(fail_on_lock=error)

        with pytest.raises(OperationalError):
            with RowSlotLock(1.0).hold(db, NEXT_MONDAY):
                pass

    def test_lock_timeout_only_set_on_postgresql(self):
        db = RecordingSession(dialect="mysql")

        with RowSlotLock(1.0).hold(db, NEXT_MONDAY):
            pass

        assert not any(sql.startswith("SET LOCAL") for sql in db.statements)
        assert "FOR UPDATE" in db.statements[-1]


class TestRowSlotLockSqlite:
    def test_write_lock_blocks_other_connections(self, session_factory):
        holder, waiter = session_factory(), session_factory()
        try:
            with RowSlotLock(1.0).hold(holder, NEXT_MONDAY):
                with pytest.raises(LockTimeout):
                    with RowSlotLock(0.1).hold(waiter, NEXT_MONDAY):
                        pass
                waiter.rollback()
            holder.rollback()

            with RowSlotLock(0.1).hold(waiter, NEXT_MONDAY):
                pass
            waiter.rollback()
        finally:
            holder.close()
            waiter.close()

    def test_separate_engines_share_the_file_lock(self, engine):
        # A second engine on the same file behaves like another worker process
        other_engine = build_engine(str(engine.url))
        first = sessionmaker(bind=engine)()
        second = sessionmaker(bind=other_engine)()
        try:
            with RowSlotLock(1.0).hold(first, NEXT_MONDAY):
                with pytest.raises(LockTimeout):
                    with RowSlotLock(0.1).hold(second, NEXT_MONDAY):
                        pass
        finally:
            first.close()
            second.close()
            other_engine.dispose()

    def test_lock_released_on_commit(self, db):
        lock = RowSlotLock(0.1)
        with lock.hold(db, NEXT_MONDAY):
            db.add(BookingDayLocks(lock_date=NEXT_MONDAY))
        db.commit()

        with lock.hold(db, NEXT_MONDAY):
            assert db.get(BookingDayLocks, NEXT_MONDAY) is not None
        db.rollback()


class TestBuildSlotLock:
    @pytest.mark.parametrize("backend, expected", [
        ("local", LocalSlotLock),
        ("database", RowSlotLock),
    ])
    def test_backends(self, backend, expected):
        lock = build_slot_lock(BookingConfig(lock_backend=backend, lock_timeout_seconds=1.5))
        assert isinstance(lock, expected)
        assert lock.timeout_seconds == 1.5

    def test_redis_backend(self):
        redis = FakeRedis()
        lock = build_slot_lock(BookingConfig(lock_backend="redis"), redis=redis)
        assert isinstance(lock, RedisSlotLock)
        assert lock.redis is redis

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            BookingConfig(lock_backend="zookeeper")
