"""
Database configuration and session management.

This module sets up the SQLAlchemy engine and session factory, the request
scoped ``get_db`` dependency, and ``session_scope`` for background jobs that
need one transaction per unit of work.
"""

import logging
import time
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from app.core.config import settings

logger = logging.getLogger("app.db")

DATABASE_URL = settings.get_database_url()


def _connect_args(url: str) -> dict:
    if "mysql" in url:
        return {
            "charset": "utf8mb4",
            "autocommit": False,
            "connect_timeout": settings.db_connect_timeout,
            "read_timeout": settings.db_read_timeout,
            "write_timeout": settings.db_write_timeout,
            # NOW() defaults and UTC retention cutoffs must agree
            "init_command": "SET time_zone = '+00:00'",
        }
    if url.startswith("sqlite"):
        # Request handlers run in a threadpool
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    DATABASE_URL,
    poolclass=QueuePool,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=settings.db_pool_recycle,
    pool_timeout=settings.db_pool_timeout,
    echo=settings.debug,
    future=True,
    connect_args=_connect_args(DATABASE_URL),
)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Keep objects usable after commit
)


@event.listens_for(engine, "connect")
def connect_handler(dbapi_connection, connection_record):
    """Log successful database connections."""
    logger.debug("New database connection established")


@event.listens_for(engine, "invalidate")
def invalidate_handler(dbapi_connection, connection_record, exception):
    """Log connection invalidation."""
    logger.warning(f"Database connection invalidated: {exception}")


def get_db() -> Generator:
    """
    Database dependency that provides a request scoped session.

    Yields:
        SQLAlchemy database session with automatic cleanup

    Services commit their own units of work; anything left pending when the
    request finishes is committed here, and rolled back on error.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.error(f"Database session error: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back and re-raises on any error.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_database_health() -> dict:
    """
    Check database connection health and return status.

    Returns:
        dict: Health status with connection info and any errors

    Example:
        {
            "status": "healthy",
            "database": "sportsreg_db",
            "pool_size": 10,
            "checked_out": 2,
            "overflow": 0,
            "response_time_ms": 5.2
        }
    """
    start_time = time.time()
    status = {
        "status": "unhealthy",
        "database": settings.db_name,
        "error": None,
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        pool = engine.pool
        status.update(
            {
                "status": "healthy",
                "pool_size": pool.size(),
                "checked_out": pool.checkedout(),
                "overflow": pool.overflow(),
                "response_time_ms": round((time.time() - start_time) * 1000, 2),
            }
        )
        logger.info("Database health check: HEALTHY")

    except Exception as e:
        status["error"] = str(e)
        logger.error(f"Database health check: UNHEALTHY - {e}")

    return status
