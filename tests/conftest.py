"""
Pytest fixtures for the approval engine test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path, or the database
  named by DATABASE_URL)
- Sessions, session factory, deterministic clock
- Role directory, recording listener and a wired ApprovalWorkflowService
- Factory fixtures for roles and policies

Environment Variables:
- DATABASE_URL: optional PostgreSQL URL.  Tables are dropped and recreated
  for every test when it is set.
"""

import json
import logging
import os
from datetime import datetime, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from approval_config.schema import EngineSettings
from approval_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from approval_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from approval_kernel.domain.approval import ApprovalModule
from approval_kernel.domain.clock import DeterministicClock
from approval_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from approval_kernel.services.approval_workflow import ApprovalWorkflowService
from approval_kernel.services.role_directory import SqlRoleDirectory


TENANT_A = "tenant-a"
TENANT_B = "tenant-b"

START_TIME = datetime(2024, 6, 3, 9, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture approval_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.approve(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_step_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("approval_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


def get_database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'approvals.db'}"


@pytest.fixture
def db_engine(tmp_path):
    """Engine with freshly created tables and ORM guards installed."""
    eng = init_engine_from_url(
        get_database_url(tmp_path),
        echo=False,
        pool_size=20,
        max_overflow=10,
        pool_timeout=30,
    )
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    """Session factory for tests that need several independent sessions."""
    return get_session_factory()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Per-test session, rolled back and closed at teardown."""
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(START_TIME)


@pytest.fixture
def settings():
    return EngineSettings()


# =============================================================================
# Collaborators
# =============================================================================


class RecordingListener:
    """WorkflowListener that remembers every callback."""

    def __init__(self):
        self.completed: list[tuple[str, str]] = []
        self.rejected: list[tuple[str, str, str]] = []

    def on_workflow_complete(self, entity_type: str, entity_id: str) -> None:
        self.completed.append((entity_type, entity_id))

    def on_workflow_rejected(self, entity_type: str, entity_id: str, reason: str) -> None:
        self.rejected.append((entity_type, entity_id, reason))


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def role_directory(session):
    return SqlRoleDirectory(session)


@pytest.fixture
def workflow(session, role_directory, listener, deterministic_clock, settings):
    """ApprovalWorkflowService wired to the test session."""
    return ApprovalWorkflowService(
        session,
        role_directory=role_directory,
        listener=listener,
        clock=deterministic_clock,
        settings=settings,
    )


@pytest.fixture
def grant(role_directory):
    """Factory fixture: grant(user_id, role, tenant_id=TENANT_A)."""

    def _grant(user_id: str, role: str, tenant_id: str = TENANT_A) -> None:
        role_directory.assign_role(tenant_id, user_id, role)

    return _grant


@pytest.fixture
def create_policy(workflow, deterministic_clock):
    """Factory fixture creating a policy through the workflow's PolicyStore.

    The clock advances one second after every policy so creation order is
    observable.
    """

    def _create(
        roles=("MANAGER", "HR_MANAGER"),
        *,
        tenant_id=TENANT_A,
        module=ApprovalModule.LEAVE_REQUEST,
        name=None,
        priority=1,
        **kwargs,
    ):
        levels = [(index, role) for index, role in enumerate(roles, start=1)]
        policy = workflow.policies.create_policy(
            tenant_id=tenant_id,
            name=name or f"{module}-{'-'.join(roles) or 'empty'}",
            module=module,
            levels=levels,
            priority=priority,
            **kwargs,
        )
        deterministic_clock.advance()
        return policy

    return _create


@pytest.fixture
def leave_chain(workflow, grant, create_policy):
    """Two-level LEAVE_REQUEST chain [MANAGER, HR_MANAGER] for leave-1."""
    grant("mgr-1", "MANAGER")
    grant("hr-1", "HR_MANAGER")
    create_policy(("MANAGER", "HR_MANAGER"))
    result = workflow.submit(
        TENANT_A, ApprovalModule.LEAVE_REQUEST, None, "LEAVE_REQUEST", "leave-1",
    )
    return result.steps
