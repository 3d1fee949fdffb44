"""
Database module.
Contains the connection management, models and repository behind the
database job store.
"""

from deliveryq.db.connection import (
    close_db,
    create_session_factory,
    create_tables,
    get_engine,
    init_db,
    session_scope,
)
from deliveryq.db.models import Base, ScheduledJob
from deliveryq.db.repository import ScheduledJobRepository

__all__ = [
    "get_engine",
    "init_db",
    "close_db",
    "create_session_factory",
    "create_tables",
    "session_scope",
    "Base",
    "ScheduledJob",
    "ScheduledJobRepository",
]
