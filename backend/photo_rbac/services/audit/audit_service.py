"""
Grant change audit trail.

Each create, update or delete of an admin role grant produces one JSON line
on the ``photo_rbac.audit`` logger, describing the grant before and after
the change. Serialization problems are logged and never reach the caller.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from ...models.admin_role_grant import AdminRoleGrant

logger = logging.getLogger("photo_rbac.audit")


@dataclass(frozen=True)
class GrantSnapshot:
    """The audited fields of a grant at one point in time."""

    role: str
    active: bool
    expires_at: datetime | None
    allowed_ips: tuple[str, ...]
    enabled: frozenset[str]

    @classmethod
    def of(cls, grant: AdminRoleGrant | None) -> GrantSnapshot | None:
        if grant is None:
            return None
        return cls(
            role=grant.role,
            active=grant.active,
            expires_at=grant.expires_at,
            allowed_ips=tuple(grant.allowed_ips or ()),
            enabled=frozenset(
                key for key, value in (grant.permissions or {}).items() if value is True
            ),
        )


_COMPARED_FIELDS = ("role", "active", "expires_at", "allowed_ips", "enabled")


def changed_fields(before: GrantSnapshot | None, after: GrantSnapshot | None) -> list[str]:
    """Names of the grant fields that differ between the two snapshots."""
    return [
        "permissions" if name == "enabled" else name
        for name in _COMPARED_FIELDS
        if getattr(before, name, None) != getattr(after, name, None)
    ]


class AuditService:
    def record_grant_change(
        self,
        *,
        actor_id: UUID,
        action: str,
        user_id: UUID,
        before: GrantSnapshot | None,
        after: GrantSnapshot | None,
    ) -> dict:
        """Write the audit line for one grant change and return its entry.

        ``before`` is ``None`` for a create and ``after`` is ``None`` for a
        delete.
        """
        enabled_before = before.enabled if before else frozenset()
        enabled_after = after.enabled if after else frozenset()
        entry = {
            "action": action,
            "actor_id": str(actor_id),
            "user_id": str(user_id),
            "role_before": before.role if before else None,
            "role_after": after.role if after else None,
            "changed": changed_fields(before, after),
            "permissions_added": sorted(enabled_after - enabled_before),
            "permissions_removed": sorted(enabled_before - enabled_after),
            "at": datetime.now(timezone.utc).isoformat(),
        }
        if after is not None and after.allowed_ips:
            entry["allowed_ips"] = list(after.allowed_ips)

        try:
            line = json.dumps(entry, sort_keys=True)
        except (TypeError, ValueError) as exc:
            logger.error("Could not serialize audit entry for %s on %s: %s", action, user_id, exc)
            return entry

        logger.info("grant %s user=%s actor=%s %s", action, user_id, actor_id, line)
        return entry
