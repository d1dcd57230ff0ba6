"""
Database package for the LinkScore Engine.

Usage:
    from linkscore.database import JobRepository, get_session_factory, init_db

    init_db()
    repo = JobRepository(get_session_factory())
"""

from .models import AnalysisJob, Base, JobStatus, TERMINAL_STATUSES, ACTIVE_STATUSES
from .session import (
    check_db_connection,
    create_db_engine,
    get_database_url,
    get_db_info,
    get_engine,
    get_session_factory,
    init_db,
    is_postgres,
    make_session_factory,
    session_scope,
)
from .repository import CANCELLED_BY_USER, CancelOutcome, JobRepository

__all__ = [
    # Models
    "AnalysisJob",
    "Base",
    "JobStatus",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",

    # Session
    "check_db_connection",
    "create_db_engine",
    "get_database_url",
    "get_db_info",
    "get_engine",
    "get_session_factory",
    "init_db",
    "is_postgres",
    "make_session_factory",
    "session_scope",

    # Repository
    "CANCELLED_BY_USER",
    "CancelOutcome",
    "JobRepository",
]
