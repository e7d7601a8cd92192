#!/usr/bin/env python3
"""
Create the approval tables and seed one tenant with starter policies.

Reads engine settings (``--config``, else ``APPROVAL_ENGINE_CONFIG``, else
the packaged defaults), creates tables, imports the policy YAML for the
tenant and grants any ``--grant user:ROLE`` pairs, then commits.

Usage:
    python3 scripts/seed_data.py --tenant acme --db-url sqlite:///approvals.db \
        --grant alice:MANAGER --grant bob:HR_MANAGER --grant root:ADMIN
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_grant(value: str) -> tuple[str, str]:
    user_id, sep, role = value.partition(":")
    if not sep or not user_id or not role:
        raise argparse.ArgumentTypeError(f"expected user:ROLE, got {value!r}")
    return user_id, role


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create approval tables and seed a tenant's policies and roles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--tenant", required=True, help="Tenant id to seed.")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML path.")
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (overrides engine.database_url from settings).",
    )
    parser.add_argument(
        "--policies",
        type=Path,
        default=None,
        help="Policy YAML (default: packaged starter policies).",
    )
    parser.add_argument(
        "--grant",
        action="append",
        type=_parse_grant,
        default=[],
        metavar="USER:ROLE",
        help="Role assignment; may be repeated.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    from approval_config import SAMPLE_POLICIES_PATH, get_settings
    from approval_kernel.bootstrap import init_from_settings, seed_tenant
    from approval_kernel.db.engine import session_scope

    settings = get_settings(args.config)
    try:
        init_from_settings(settings, args.db_url)
    except ValueError as exc:
        print(f"error: {exc} (pass --db-url or set engine.database_url)", file=sys.stderr)
        return 2

    with session_scope() as session:
        policies = seed_tenant(
            session,
            args.tenant,
            policies_path=args.policies or SAMPLE_POLICIES_PATH,
            role_assignments=args.grant,
        )

    print(f"Seeded tenant {args.tenant}: {len(policies)} policies, {len(args.grant)} role grants")
    for policy in policies:
        roles = " -> ".join(level.approver_role for level in policy.levels)
        print(f"  [{policy.priority:>3}] {policy.module:<17} {policy.name:<20} {roles}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
