import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .services.exceptions import ResourceLockedError

logger = logging.getLogger(__name__)

# SQLSTATE codes that mean "could not get the lock in time, try again"
# 55P03 lock_not_available, 40001 serialization_failure, 40P01 deadlock_detected
RETRYABLE_PG_CODES = {"55P03", "40001", "40P01"}

# Execution option marking a connection whose transaction will write
WRITE_TRANSACTION = "booking_write"


def create_db_engine(
    url: str,
    lock_timeout_seconds: float | None = None,
    **kwargs,
) -> Engine:
    """
    Create an engine with booking-safe transaction settings.

    SQLite: transactions opened by atomic() start with BEGIN IMMEDIATE, so
    concurrent booking attempts are serialized by the database write lock;
    the busy timeout bounds how long a writer waits for it. Reads use a
    deferred BEGIN and, under WAL, never wait on a writer.

    PostgreSQL: lock_timeout bounds waits on FOR UPDATE row locks.
    """
    if lock_timeout_seconds is None:
        lock_timeout_seconds = settings.lock_timeout_seconds

    connect_args = dict(kwargs.pop("connect_args", {}))
    is_sqlite = url.startswith("sqlite")

    if is_sqlite:
        # check_same_thread=False is required for SQLite under FastAPI threads
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", lock_timeout_seconds)
    elif url.startswith("postgresql"):
        timeout_ms = int(lock_timeout_seconds * 1000)
        connect_args.setdefault("options", f"-c lock_timeout={timeout_ms}")

    engine = create_engine(url, connect_args=connect_args, **kwargs)

    if is_sqlite:
        _install_sqlite_hooks(engine)

    return engine


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, _):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        # Readers never block the writer and vice versa (no-op for :memory:)
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        # Only write transactions take the database write lock up front
        if conn.get_execution_options().get(WRITE_TRANSACTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


engine = create_db_engine(settings.resolved_database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    Run a write transaction: commit on success, roll back everything on any error.

    On SQLite the transaction starts with BEGIN IMMEDIATE, so concurrent
    writers queue on the database lock instead of racing. A read-only
    transaction left open on the session is ended first; a session with
    pending changes keeps its transaction.

    Objects stay loaded after commit, so returning them needs no new query.
    """
    expire_on_commit = db.expire_on_commit
    try:
        if not (db.new or db.dirty or db.deleted):
            if db.in_transaction():
                db.commit()
            # Rows kept loaded by an earlier write are re-read under the lock
            db.expire_all()
        if not db.in_transaction():
            db.connection(execution_options={WRITE_TRANSACTION: True})

        db.expire_on_commit = False
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
    finally:
        db.expire_on_commit = expire_on_commit


@contextmanager
def lock_errors_as_retryable(action: str):
    """Re-raise lock wait timeouts as ResourceLockedError."""
    try:
        yield
    except DBAPIError as exc:
        if is_lock_error(exc):
            logger.warning(f"Lock wait timed out during {action}: {exc.orig or exc}")
            raise ResourceLockedError(
                "Room or staff member is being booked by another request, retry shortly"
            ) from exc
        raise


def is_lock_error(exc: DBAPIError) -> bool:
    """True when the driver error means a lock wait timed out or lost a race."""
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in RETRYABLE_PG_CODES:
        return True
    message = str(orig or exc).lower()
    return "database is locked" in message or "database table is locked" in message
