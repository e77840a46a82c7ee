# backend/app/database.py
"""
Engine, session factory and the per-request session dependency.

SQLite is the default store (a local file, or :memory: under tests).
Any other URL gets a QueuePool sized by the DB_POOL_* settings.
"""

import logging
from collections.abc import Generator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import settings

logger = logging.getLogger(__name__)


def _create_engine() -> Engine:
    url = settings.database_url

    if settings.is_sqlite:
        # Sync endpoints run in FastAPI's threadpool, so connections cross threads
        options = {"connect_args": {"check_same_thread": False}, "echo": settings.debug}
        if ":memory:" in url:
            options["poolclass"] = StaticPool
        logger.info(f"Using SQLite database {url}")
        sqlite_engine = create_engine(url, **options)
        configure_sqlite_engine(sqlite_engine)
        return sqlite_engine

    logger.info(
        f"Using pooled database (size={settings.db_pool_size}, "
        f"overflow={settings.db_pool_max_overflow}, recycle={settings.db_pool_recycle}s)"
    )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=30,
        echo=settings.debug,
    )


def configure_sqlite_engine(sqlite_engine: Engine) -> None:
    """
    Apply connection-level fixes every SQLite engine needs.

    - Foreign keys on, so ON DELETE CASCADE purges an account's ledger
    - pysqlite's implicit transaction handling off, with an explicit BEGIN,
      so SAVEPOINTs (per-row import isolation) nest inside the outer
      transaction instead of committing it
    """
    event.listen(sqlite_engine, "connect", _on_sqlite_connect)
    event.listen(sqlite_engine, "begin", _on_sqlite_begin)


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """One session per request, closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
