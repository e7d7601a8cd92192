"""
Module: approval_kernel.db.base
Responsibility: Declarative base shared by the policy, level, step, delegation
    and role-assignment tables.
Architecture position: Kernel > DB.  Every model imports from here; this
    module imports only db/types.py.

Invariants enforced:
    - Every row has a uuid4 ``id`` stored through UUIDString.
    - Amount thresholds map to Numeric(38, 9), never float.
    - ``Mapped[datetime]`` columns are UTCDateTime, so values read back are
      timezone-aware UTC on every backend.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from approval_kernel.db.types import (
    ActorId,
    EntityId,
    EntityType,
    LongText,
    RoleName,
    ShortCode,
    TenantId,
    UTCDateTime,
    UUIDString,
)

_STRING_LENGTHS = {
    TenantId: 64,
    ActorId: 64,
    EntityType: 50,
    EntityId: 128,
    RoleName: 50,
    ShortCode: 50,
    LongText: 4000,
}


class Base(DeclarativeBase):
    """Declarative base: uuid4 primary key plus the shared annotation map."""

    type_annotation_map: ClassVar[dict[Any, Any]] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
        **{alias: String(length) for alias, length in _STRING_LENGTHS.items()},
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


__all__ = ["Base", "UUID", "UUIDString"]
