"""
Database Session Management

Handles connection pooling, session lifecycle, and database initialization.
PostgreSQL in production, SQLite for local development and tests.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from linkscore.utils.config import get_settings

from .models import Base

logger = logging.getLogger(__name__)

# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def get_database_url(url: Optional[str] = None) -> str:
    """
    Resolve the database URL.

    Priority:
    1. Explicit url (Settings.DATABASE_URL)
    2. DATABASE_URL environment variable
    3. SQLite fallback for local development
    """
    url = url or os.getenv("DATABASE_URL")

    if url:
        # Hosted PostgreSQL URLs use postgres:// but SQLAlchemy needs postgresql://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    sqlite_path = os.getenv("SQLITE_PATH", "linkscore_dev.db")
    logger.warning(f"No DATABASE_URL found, using SQLite: {sqlite_path}")
    return f"sqlite:///{sqlite_path}"


def is_postgres(engine: Engine) -> bool:
    return engine.dialect.name == "postgresql"


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def create_db_engine(url: Optional[str] = None) -> Engine:
    """
    Create database engine with appropriate settings.

    PostgreSQL: Connection pooling, pre-ping
    SQLite: Single shared connection for in-memory databases
    """
    url = get_database_url(url)
    echo = os.getenv("SQL_DEBUG", "false").lower() == "true"

    if url.startswith("postgresql"):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,                # Base connections
            max_overflow=10,            # Additional connections under load
            pool_timeout=30,            # Wait for connection
            pool_recycle=1800,          # Recycle connections after 30 min
            pool_pre_ping=True,         # Verify connections before use
            echo=echo,
        )
        logger.info("Created PostgreSQL engine with connection pooling")
        return engine

    kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # Every session must see the same in-memory database
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine")
    return engine


# Global engine (lazy initialization)
_engine = None


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(get_settings().DATABASE_URL)
    return _engine


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

_SessionLocal = None


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Rows stay readable after the session closes
    )


def get_session_factory() -> sessionmaker:
    """Get or create session factory for the default engine."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_session_factory(get_engine())
    return _SessionLocal


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions: commit on success, rollback on error.

    Usage:
        with session_scope(factory) as db:
            db.query(AnalysisJob).all()
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_db(engine: Optional[Engine] = None, drop_all: bool = False) -> None:
    """
    Create all tables.

    Args:
        engine: Engine to initialize (defaults to the global engine)
        drop_all: If True, drop all tables first (USE WITH CAUTION!)
    """
    engine = engine or get_engine()

    if drop_all:
        logger.warning("Dropping all database tables!")
        Base.metadata.drop_all(bind=engine)

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def check_db_connection(engine: Optional[Engine] = None) -> bool:
    """
    Check if database connection is working.

    Returns:
        True if connection successful, False otherwise
    """
    engine = engine or get_engine()
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def get_db_info(engine: Optional[Engine] = None) -> dict:
    """Diagnostic info for the health endpoint (password masked)."""
    engine = engine or get_engine()
    return {
        "database_type": engine.dialect.name,
        "connection_url": engine.url.render_as_string(hide_password=True),
        "connected": check_db_connection(engine),
    }
