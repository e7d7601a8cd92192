"""
BaseService -- common constructor for the approval services.

Every service works inside a session it was handed.  It may ``add`` and
``flush`` but never commits or rolls back: session_scope() or the caller's
own unit of work decides, so a rejection, its SKIPPED cascade and the
listener's writes commit as one.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from approval_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Service bound to one session; ``ModelType`` is the table it writes."""

    def __init__(self, session: Session):
        self.session = session
