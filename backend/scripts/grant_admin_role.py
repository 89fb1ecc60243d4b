"""
Grant an admin role to a user.

Used to bootstrap the first administrator, before anyone holds createAdmins.
Run against the database in DATABASE_URL; SQLite databases get their tables
created on the fly.

Usage:
    python -m scripts.grant_admin_role <user-uuid> [--role admin]
        [--permission exportData ...] [--allow-ip 10.0.0.0/8 ...]
        [--expires-at 2027-01-01T00:00:00+00:00]
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from uuid import UUID

from photo_rbac.auth.permission_catalog import all_keys
from photo_rbac.auth.role_hierarchy import ROLE_ORDER, AdminRole
from photo_rbac.config import Settings
from photo_rbac.crud.admin_role_grant import AdminRoleStore
from photo_rbac.database import build_engine, build_sessionmaker, create_all
from photo_rbac.errors import AppError
from photo_rbac.models.admin_role_grant import AdminRoleGrant


def _parse_expires_at(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scripts.grant_admin_role",
        description="Create an admin role grant for a user.",
    )
    parser.add_argument("user_id", type=UUID, help="UUID of the user to promote")
    parser.add_argument(
        "--role",
        choices=[role.value for role in ROLE_ORDER],
        default=AdminRole.ADMIN.value,
    )
    parser.add_argument(
        "--permission",
        dest="permissions",
        action="append",
        default=[],
        choices=sorted(permission.value for permission in all_keys()),
        metavar="KEY",
        help="Optional permission to enable on top of the role (repeatable)",
    )
    parser.add_argument(
        "--allow-ip",
        dest="allowed_ips",
        action="append",
        default=[],
        metavar="ADDRESS_OR_CIDR",
        help="Restrict the grant to this address or range (repeatable)",
    )
    parser.add_argument("--expires-at", type=_parse_expires_at, default=None)
    parser.add_argument(
        "--suspended",
        action="store_true",
        help="Create the grant inactive",
    )
    return parser


async def grant_admin_role(
    args: argparse.Namespace, settings: Settings | None = None
) -> AdminRoleGrant:
    settings = settings or Settings.from_env()
    engine = build_engine(settings)
    try:
        if settings.is_sqlite:
            await create_all(engine)
        store = AdminRoleStore(build_sessionmaker(engine))
        return await store.create(
            user_id=args.user_id,
            role=args.role,
            permissions={key: True for key in args.permissions},
            expires_at=args.expires_at,
            active=not args.suspended,
            allowed_ips=args.allowed_ips,
        )
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        grant = asyncio.run(grant_admin_role(args))
    except AppError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    enabled = sorted(key for key, value in grant.permissions.items() if value)
    print(f"Granted {grant.role} to {grant.user_id}")
    print(f"  permissions: {', '.join(enabled)}")
    if grant.allowed_ips:
        print(f"  allowed IPs: {', '.join(grant.allowed_ips)}")
    if grant.expires_at is not None:
        print(f"  expires at: {grant.expires_at.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
