"""Database layer - engine, base classes and column types."""

from prepaid_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from prepaid_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
