"""
Database connection and session management.

Implements engine and session factory singletons plus a transactional
session scope. Stores accept an explicit session factory so tests and
embedding applications can point them at their own engine.
"""

from contextlib import contextmanager
from typing import Generator, Optional

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger(__name__)

# Global singletons
_engine: Engine | None = None
_SessionFactory: sessionmaker | None = None


def build_engine(database_url: str, pool_size: int = 5, echo: bool = False) -> Engine:
    """
    Create an engine with settings suited to the backend.

    SQLite connections are shared across the scheduler's worker threads, and
    in-memory SQLite uses a single static connection so every session sees
    the same database.

    Args:
        database_url: SQLAlchemy URL
        pool_size: Connection pool size (ignored for SQLite)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine instance
    """
    if database_url.startswith("sqlite"):
        sqlite_kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            sqlite_kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **sqlite_kwargs)

    return create_engine(
        database_url,
        pool_size=pool_size,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
    )


def get_engine() -> Engine:
    """
    Get or create SQLAlchemy engine (singleton).

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        from reflective_prompts.config import settings

        _engine = build_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            echo=settings.database_echo_sql,
        )

        logger.info(
            "db_engine_created",
            database=_engine.url.database,
            backend=_engine.url.get_backend_name(),
        )

    return _engine


def get_session_factory() -> sessionmaker:
    """
    Get or create session factory (singleton).

    Returns:
        Session factory bound to the global engine
    """
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
        logger.info("db_session_factory_created")

    return _SessionFactory


def reset_engine() -> None:
    """Dispose the global engine and forget the singletons."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@contextmanager
def session_scope(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic commit/rollback.

    Usage:
        >>> with session_scope() as session:
        ...     session.add(row)
        ...     # Automatically commits on success, rolls back on exception

    Args:
        session_factory: Factory to use (default: global factory)

    Yields:
        SQLAlchemy Session instance

    Raises:
        Exception: Any database exception (after rollback)
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("db_session_rollback", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        session.close()


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all database tables.

    Args:
        engine: Engine to use (default: global engine)
    """
    from .models import Base

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("db_tables_created")


def drop_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Drop all database tables.

    WARNING: Destructive operation. Only use for testing.
    """
    from .models import Base

    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
    logger.warning("db_tables_dropped")
