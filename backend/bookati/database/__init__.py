"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from bookati.core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Pool settings for server databases, writer-serialising settings for SQLite."""
    if db_url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_seconds,
            },
            "future": True,
        }
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
        "future": True,
    }


def _install_sqlite_locking(engine: Engine) -> None:
    """
    Make every SQLite transaction take the database write lock up front.

    pysqlite's default deferred BEGIN lets two transactions read the same
    capacity and then race on the write; BEGIN IMMEDIATE serialises them
    the way SELECT ... FOR UPDATE does on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(db_url: str) -> Engine:
    """Create an engine for ``db_url`` with dialect-appropriate locking."""
    built = create_engine(db_url, **_build_engine_kwargs(db_url))
    if built.dialect.name == "sqlite":
        _install_sqlite_locking(built)

    @event.listens_for(built, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return built


engine: Engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_dialect_name(db: Session, default: str = "sqlite") -> str:
    """Dialect of the engine a session is bound to, or ``default`` when unbound."""
    try:
        return db.get_bind().dialect.name
    except UnboundExecutionError:
        return default


def get_db_pool_status() -> dict[str, Any]:
    """Get current database pool statistics."""
    pool = engine.pool
    status: dict[str, Any] = {"dialect": engine.dialect.name}
    for name in ("size", "checkedin", "checkedout", "overflow"):
        reader = getattr(pool, name, None)
        if callable(reader):
            status[name] = reader()
    return status
