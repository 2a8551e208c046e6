from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from .config import settings

# Seconds a SQLite connection waits on the file lock by default
SQLITE_BUSY_TIMEOUT = 30

# Connection execution option: open the transaction with BEGIN IMMEDIATE,
# waiting at most this many seconds for the write lock
SQLITE_WRITE_LOCK_OPTION = "sqlite_write_lock_timeout"


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets cross-thread access and foreign keys."""
    if url.startswith("sqlite"):
        # check_same_thread=False: FastAPI runs sync endpoints in a thread pool.
        # timeout: how long a writer waits on the SQLite file lock.
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
        )

        @event.listens_for(engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            # Transactions are started by the "begin" listener below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def begin_sqlite(conn):
            write_lock_timeout = conn.get_execution_options().get(SQLITE_WRITE_LOCK_OPTION)
            if write_lock_timeout is None:
                conn.exec_driver_sql("BEGIN")
                return

            conn.exec_driver_sql(f"PRAGMA busy_timeout = {int(write_lock_timeout * 1000)}")
            try:
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            finally:
                conn.exec_driver_sql(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT * 1000}")

        return engine

    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.resolved_database_url)

# SessionLocal is the main way to work with the DB
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
