"""
Module: approval_kernel.selectors.base
Responsibility: Base class for read-only queries over the approval tables.

Selectors never add, flush or commit.  They filter on tenant_id in every
query and hand back frozen DTOs from approval_kernel.domain, not ORM rows.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from approval_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Read-only view bound to one session."""

    def __init__(self, session: Session):
        self.session = session
