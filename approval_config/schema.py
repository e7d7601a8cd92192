"""
Configuration schema (``approval_config.schema``).

Frozen dataclasses for everything read from YAML: engine settings and
policy fragments used to seed a tenant's policy store.  Amount thresholds
stay strings until the policy store converts them to ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings for the approval engine.

    ``max_delegation_days=None`` disables the window length cap.
    """

    admin_role: str = "ADMIN"
    max_delegation_days: int | None = 90
    log_level: str = "INFO"
    database_url: str | None = None
    checksum: str = ""


@dataclass(frozen=True)
class LevelDef:
    """YAML-authored approval level."""

    level_order: int
    approver_role: str


@dataclass(frozen=True)
class PolicyDef:
    """YAML-authored approval policy."""

    name: str
    module: str
    priority: int = 1
    is_active: bool = True
    min_amount: str | None = None
    max_amount: str | None = None
    min_days: int | None = None
    max_days: int | None = None
    levels: tuple[LevelDef, ...] = ()
