"""Database layer: declarative bases, engine and session scope."""

from formflow_kernel.db.base import Base, TimestampedBase, UUIDString
from formflow_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "TimestampedBase",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
]
