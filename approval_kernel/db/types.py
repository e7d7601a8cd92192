"""
Module: approval_kernel.db.types
Responsibility: Annotated type aliases and column types shared by every model,
    so identifiers, roles and timestamps have identical definitions
    system-wide.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Timestamps are stored as UTC.  Naive datetimes are rejected on bind so
      delegation windows can never be compared across mixed time zones.
"""

from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator


# Annotated aliases resolved to sized String columns by Base.type_annotation_map.

# Opaque tenant / actor identifiers supplied by collaborators
TenantId = Annotated[str, "tenant_id"]
ActorId = Annotated[str, "actor_id"]

# Collaborator entity references
EntityType = Annotated[str, "entity_type"]
EntityId = Annotated[str, "entity_id"]

# Organizational role names (MANAGER, HR_MANAGER, ...)
RoleName = Annotated[str, "role_name"]

# Short identifier strings
ShortCode = Annotated[str, "short_code"]

# Long text for notes and reasons
LongText = Annotated[str, "long_text"]


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalized to UTC.

    Contract:
        Binds only timezone-aware datetimes, converted to UTC.  Values read
        back are UTC-aware even on backends that drop the offset (SQLite).

    Raises:
        ValueError: On bind of a naive datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else ensure_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` converted to UTC; naive values raise ValueError."""
    if value.tzinfo is None:
        raise ValueError(f"Naive datetime not allowed: {value!r}")
    return value.astimezone(timezone.utc)


class UUIDString(TypeDecorator):
    """UUID stored as its 36 character string form, portable across backends."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)
