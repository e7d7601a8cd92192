"""
Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into typed ``approval_config.schema``
dataclass instances.  Runtime settings go through
``approval_config.get_settings()``; the policy helpers here are used to
seed tenant policy stores.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import EngineSettings, LevelDef, PolicyDef

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def parse_amount(value: Any) -> str | None:
    """Normalize a YAML threshold to a canonical decimal string."""
    if value is None:
        return None
    if isinstance(value, float):
        # YAML floats are parsed through their repr to avoid binary noise
        value = repr(value)
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse amount from {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return str(amount)


def parse_optional_int(value: Any, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    return value


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse ``EngineSettings`` from the ``engine`` section of a settings file.

    Unknown keys are rejected so that typos do not silently fall back to
    defaults.
    """
    section = data.get("engine", {}) or {}
    known = {"admin_role", "max_delegation_days", "log_level", "database_url"}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown engine settings: {sorted(unknown)}")

    admin_role = section.get("admin_role", "ADMIN")
    if not isinstance(admin_role, str) or not admin_role:
        raise ValueError("admin_role must be a non-empty string")

    max_days = parse_optional_int(
        section.get("max_delegation_days", 90), "max_delegation_days",
    )
    if max_days is not None and max_days < 1:
        raise ValueError("max_delegation_days must be positive")

    log_level = str(section.get("log_level", "INFO")).upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log_level {log_level!r}")

    return EngineSettings(
        admin_role=admin_role,
        max_delegation_days=max_days,
        log_level=log_level,
        database_url=section.get("database_url"),
        checksum=compute_checksum(section),
    )


def parse_level(data: dict[str, Any]) -> LevelDef:
    return LevelDef(
        level_order=int(data["level_order"]),
        approver_role=data["approver_role"],
    )


def parse_policy(data: dict[str, Any]) -> PolicyDef:
    """
    Parse a ``PolicyDef`` from a dict.

    Raises:
        KeyError: if ``name``, ``module`` or a level field is missing.
        ValueError: if a threshold cannot be parsed.
    """
    return PolicyDef(
        name=data["name"],
        module=data["module"],
        priority=int(data.get("priority", 1)),
        is_active=bool(data.get("is_active", True)),
        min_amount=parse_amount(data.get("min_amount")),
        max_amount=parse_amount(data.get("max_amount")),
        min_days=parse_optional_int(data.get("min_days"), "min_days"),
        max_days=parse_optional_int(data.get("max_days"), "max_days"),
        levels=tuple(parse_level(level) for level in data.get("levels", [])),
    )


def load_policy_defs(path: Path) -> tuple[PolicyDef, ...]:
    """Load every policy listed under ``policies:`` in a YAML file."""
    data = load_yaml_file(path)
    return tuple(parse_policy(item) for item in data.get("policies", []))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
