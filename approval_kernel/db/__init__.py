"""Database layer - engine, base classes, types, and ORM guards."""

from approval_kernel.db.base import UUID, Base, UUIDString
from approval_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from approval_kernel.db.types import UTCDateTime, ensure_utc

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDString",
    "UUID",
    "UTCDateTime",
    "ensure_utc",
]
