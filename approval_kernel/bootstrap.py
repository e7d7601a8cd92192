"""
Module: approval_kernel.bootstrap
Responsibility: Bring up the approval engine from ``EngineSettings`` and
    seed a tenant with starter policies and role assignments.
Architecture position: Kernel > wiring.  Used by scripts and deployment
    entrypoints; services never call it.

Failure modes:
    - ValueError if neither an explicit URL nor ``settings.database_url``
      is available.
    - Policy and role seeding errors propagate from PolicyStore /
      SqlRoleDirectory; the caller's session_scope() rolls back.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from approval_config import SAMPLE_POLICIES_PATH, load_policy_defs
from approval_config.schema import EngineSettings
from approval_kernel.db.engine import create_tables, init_engine_from_url
from approval_kernel.db.immutability import register_immutability_listeners
from approval_kernel.domain.approval import ApprovalPolicy
from approval_kernel.domain.clock import Clock
from approval_kernel.logging_config import configure_logging, get_logger
from approval_kernel.services.policy_store import PolicyStore
from approval_kernel.services.role_directory import SqlRoleDirectory

logger = get_logger("bootstrap")


def init_from_settings(
    settings: EngineSettings,
    database_url: str | None = None,
) -> Engine:
    """Configure logging, open the engine, create tables, install guards."""
    url = database_url or settings.database_url
    if not url:
        raise ValueError("No database_url configured for the approval engine")

    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(url)
    create_tables()
    register_immutability_listeners()

    logger.info(
        "approval_engine_bootstrapped",
        extra={
            "dialect": engine.dialect.name,
            "admin_role": settings.admin_role,
            "settings_checksum": settings.checksum,
        },
    )
    return engine


def seed_tenant(
    session: Session,
    tenant_id: str,
    policies_path: Path = SAMPLE_POLICIES_PATH,
    role_assignments: Iterable[tuple[str, str]] = (),
    clock: Clock | None = None,
) -> tuple[ApprovalPolicy, ...]:
    """Import YAML policies and grant ``(user_id, role)`` pairs for a tenant.

    Flushes only; commit through ``session_scope()``.
    """
    policies = PolicyStore(session, clock).import_policy_defs(
        tenant_id, load_policy_defs(policies_path),
    )

    roles = SqlRoleDirectory(session)
    granted = 0
    for user_id, role in role_assignments:
        roles.assign_role(tenant_id, user_id, role)
        granted += 1

    logger.info(
        "tenant_seeded",
        extra={
            "tenant_id": tenant_id,
            "policy_count": len(policies),
            "role_assignment_count": granted,
            "policies_path": str(policies_path),
        },
    )
    return policies
