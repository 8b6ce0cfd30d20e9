from sqlalchemy import create_engine, event
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as SA_TimeoutError,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from support_chat.core.config import settings
from support_chat.utils.errors import StorageUnavailable
import os
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

if os.getenv("PYTEST_RUN") == "1":
    SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
else:
    SQLALCHEMY_DATABASE_URL = settings.SQLALCHEMY_DATABASE_URL

is_sqlite = SQLALCHEMY_DATABASE_URL.startswith("sqlite")

pool_kwargs = {
    # Avoid stale idle connections causing first-hit failures after inactivity
    "pool_pre_ping": True,
}
if is_sqlite:
    # SQLite uses a per-process connection; pass connect_args and avoid pool sizing
    connect_args = {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT}
else:
    connect_args = {}
    pool_kwargs.update({
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
    })

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args=connect_args,
    **pool_kwargs,
)


def apply_sqlite_pragmas(target_engine) -> None:
    """Turn on WAL, foreign keys and a bounded busy timeout for every connection."""

    busy_ms = int(settings.SQLITE_BUSY_TIMEOUT * 1000)

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            # WAL improves read concurrency; NORMAL reduces fsync pressure.
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.execute(f"PRAGMA busy_timeout={busy_ms};")
        finally:
            cursor.close()


if is_sqlite:
    apply_sqlite_pragmas(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session():
    """Provide a short-lived SessionLocal with guaranteed close.

    Use in places where FastAPI Depends is unavailable (startup hooks,
    scripts) to ensure connections are promptly returned to the pool.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def storage_guard(db: Session, operation: str):
    """Translate infrastructure failures into ``StorageUnavailable``.

    Only connection-level failures (operational errors, driver interface
    errors, pool timeouts) are retryable. The session is rolled back first so
    nothing from the failed unit of work is left pending. Integrity violations
    are re-raised untouched: callers treat those as conflicts, not outages.
    Other driver errors (bad data, programming errors) are rolled back and
    re-raised as they are.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (SA_TimeoutError, OperationalError, InterfaceError) as exc:
        db.rollback()
        logger.exception("Storage failure during %s", operation)
        raise StorageUnavailable(f"Storage unavailable during {operation}") from exc
    except DBAPIError:
        db.rollback()
        logger.exception("Rejected statement during %s", operation)
        raise
