import json
import logging
import uuid
from datetime import datetime, timezone

from photo_rbac.auth.role_hierarchy import AdminRole, apply_forced_inheritance
from photo_rbac.models.admin_role_grant import AdminRoleGrant
from photo_rbac.services.audit.audit_service import (
    AuditService,
    GrantSnapshot,
    changed_fields,
)


def make_grant(role: AdminRole, permissions=None, **fields) -> AdminRoleGrant:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return AdminRoleGrant(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        role=role.value,
        permissions=apply_forced_inheritance(role, permissions),
        granted_by=None,
        expires_at=fields.get("expires_at"),
        active=fields.get("active", True),
        allowed_ips=fields.get("allowed_ips", []),
        created_at=now,
        updated_at=now,
    )


def test_snapshot_keeps_enabled_keys_only() -> None:
    snapshot = GrantSnapshot.of(make_grant(AdminRole.MODERATOR, {"exportData": True}))
    assert "exportData" in snapshot.enabled
    assert "editUsers" not in snapshot.enabled
    assert GrantSnapshot.of(None) is None


def test_changed_fields_on_update() -> None:
    before = GrantSnapshot.of(make_grant(AdminRole.ADMIN))
    after = GrantSnapshot.of(make_grant(AdminRole.ADMIN, active=False, allowed_ips=["10.0.0.0/8"]))
    assert changed_fields(before, after) == ["active", "allowed_ips"]
    assert changed_fields(before, before) == []


def test_downgrade_entry_records_roles_and_removed_keys(caplog) -> None:
    actor_id, user_id = uuid.uuid4(), uuid.uuid4()
    before = GrantSnapshot.of(make_grant(AdminRole.ADMIN))
    after = GrantSnapshot.of(make_grant(AdminRole.MODERATOR))

    with caplog.at_level(logging.INFO, logger="photo_rbac.audit"):
        entry = AuditService().record_grant_change(
            actor_id=actor_id,
            action="update",
            user_id=user_id,
            before=before,
            after=after,
        )

    assert entry["role_before"] == "admin"
    assert entry["role_after"] == "moderator"
    assert entry["changed"] == ["role", "permissions"]
    assert "editUsers" in entry["permissions_removed"]
    assert entry["permissions_added"] == []

    message = caplog.records[-1].getMessage()
    assert message.startswith(f"grant update user={user_id} actor={actor_id} ")
    logged = json.loads(message.split(" ", 4)[4])
    assert logged["role_after"] == "moderator"


def test_create_and_delete_entries() -> None:
    service = AuditService()
    snapshot = GrantSnapshot.of(make_grant(AdminRole.MODERATOR, allowed_ips=["203.0.113.0/24"]))

    created = service.record_grant_change(
        actor_id=uuid.uuid4(), action="create", user_id=uuid.uuid4(), before=None, after=snapshot
    )
    deleted = service.record_grant_change(
        actor_id=uuid.uuid4(), action="delete", user_id=uuid.uuid4(), before=snapshot, after=None
    )

    assert created["role_before"] is None
    assert created["role_after"] == "moderator"
    assert created["allowed_ips"] == ["203.0.113.0/24"]
    assert "moderateImages" in created["permissions_added"]
    assert deleted["role_after"] is None
    assert "moderateImages" in deleted["permissions_removed"]
    assert "allowed_ips" not in deleted


def test_serialization_failure_is_logged_not_raised(caplog, monkeypatch) -> None:
    def broken_dumps(*args, **kwargs):
        raise TypeError("not serializable")

    monkeypatch.setattr("photo_rbac.services.audit.audit_service.json.dumps", broken_dumps)

    with caplog.at_level(logging.ERROR, logger="photo_rbac.audit"):
        AuditService().record_grant_change(
            actor_id=uuid.uuid4(),
            action="delete",
            user_id=uuid.uuid4(),
            before=None,
            after=None,
        )

    assert "Could not serialize audit entry" in caplog.text
