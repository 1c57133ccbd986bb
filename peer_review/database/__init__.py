"""
Database connection and utilities package.
"""
from .base import (
    Base,
    utcnow,
    get_engine,
    get_session_factory,
    get_db_session,
    check_database_connection,
    wait_for_database,
    init_database,
    close_database,
)

__all__ = [
    "Base",
    "utcnow",
    "get_engine",
    "get_session_factory",
    "get_db_session",
    "check_database_connection",
    "wait_for_database",
    "init_database",
    "close_database",
]
