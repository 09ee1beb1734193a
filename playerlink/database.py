"""
Database connection and session management for playerlink.

PostgreSQL in production, SQLite for tests and local development.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Mapping, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from playerlink.config import get_config
from playerlink.models import Base

logger = logging.getLogger(__name__)

# Global database engine and session factory
_engine: Optional[Engine] = None
_SessionFactory = None


def get_database_url(config: Optional[Mapping[str, Any]] = None) -> str:
    """
    Get database URL from configuration.

    Returns:
        Database connection URL
    """
    config = config or get_config()
    db_url = config.get("DATABASE_URL")

    if not db_url:
        # Build from components if DATABASE_URL not provided
        db_host = config.get("DB_HOST", "localhost")
        db_port = config.get("DB_PORT", "5432")
        db_user = config.get("DB_USER", "playerlink")
        db_password = config.get("DB_PASSWORD", "playerlink")
        db_name = config.get("DB_NAME", "playerlink")

        db_url = f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"

    return db_url


def init_database(db_url: Optional[str] = None, echo: bool = False, create_tables: bool = False) -> Engine:
    """
    Initialize database engine and session factory.

    Args:
        db_url: Connection URL (defaults to the configured one)
        echo: If True, log all SQL statements
        create_tables: If True, create all tables (always done for SQLite)
    """
    global _engine, _SessionFactory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    db_url = db_url or get_database_url()

    engine_kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
    }

    if db_url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine_kwargs["poolclass"] = StaticPool
        create_tables = True
    else:
        engine_kwargs.update(
            {
                "pool_size": 10,
                "max_overflow": 20,
                "pool_recycle": 3600,
                "connect_args": {"connect_timeout": 10, "options": "-c timezone=utc"},
            }
        )

    _engine = create_engine(db_url, **engine_kwargs)
    _SessionFactory = scoped_session(sessionmaker(bind=_engine, expire_on_commit=False))

    if create_tables:
        logger.warning("Creating database tables - use migrations in production!")
        Base.metadata.create_all(_engine)

    logger.info(f"Database initialized: {db_url.split('@')[1] if '@' in db_url else 'local'}")
    return _engine


def get_session() -> Session:
    """
    Get a database session.

    Raises:
        RuntimeError: If database not initialized
    """
    if _SessionFactory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    return _SessionFactory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope for database operations.

    Usage:
        with session_scope() as session:
            profile = session.get(Profile, user_id)
            # Automatically commits on success, rolls back on error
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database transaction failed: {e}")
        raise
    finally:
        session.close()


def remove_session() -> None:
    """Release the scoped session bound to the current thread."""
    if _SessionFactory is not None:
        _SessionFactory.remove()


def close_database() -> None:
    """
    Close database connections and clean up.
    """
    global _engine, _SessionFactory

    if _SessionFactory:
        _SessionFactory.remove()
        _SessionFactory = None

    if _engine:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")
