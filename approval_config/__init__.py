"""
approval_config -- single public entrypoint for engine settings.

Responsibility:
    ``get_settings()`` is the only way runtime code obtains engine
    settings.  Policy fragments for seeding a tenant's policy store are
    loaded with ``load_policy_defs()``.

Failure modes:
    - ``FileNotFoundError`` -- an explicit path (or the path named by
      ``APPROVAL_ENGINE_CONFIG``) does not exist.
    - ``ValueError`` -- unknown keys or malformed values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from approval_config.loader import (
    compute_checksum,
    load_policy_defs,
    load_yaml_file,
    parse_settings,
)
from approval_config.schema import EngineSettings, LevelDef, PolicyDef

_logger = logging.getLogger("approval_kernel.config")

CONFIG_ENV_VAR = "APPROVAL_ENGINE_CONFIG"

DEFAULTS_DIR = Path(__file__).parent / "defaults"
DEFAULT_SETTINGS_PATH = DEFAULTS_DIR / "settings.yaml"
SAMPLE_POLICIES_PATH = DEFAULTS_DIR / "policies.yaml"


def get_settings(path: Path | str | None = None) -> EngineSettings:
    """Load engine settings.

    Resolution order: explicit ``path``, then the file named by the
    ``APPROVAL_ENGINE_CONFIG`` environment variable, then the packaged
    defaults.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_SETTINGS_PATH

    settings = parse_settings(load_yaml_file(Path(path)))
    _logger.info(
        "approval_config_loaded",
        extra={
            "config_path": str(path),
            "checksum": settings.checksum,
            "admin_role": settings.admin_role,
            "max_delegation_days": settings.max_delegation_days,
        },
    )
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_SETTINGS_PATH",
    "SAMPLE_POLICIES_PATH",
    "EngineSettings",
    "LevelDef",
    "PolicyDef",
    "compute_checksum",
    "get_settings",
    "load_policy_defs",
    "load_yaml_file",
]
