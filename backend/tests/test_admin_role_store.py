"""Tests for AdminRoleStore against an in-memory SQLite database."""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from photo_rbac.auth.permission_catalog import AdminPermission
from photo_rbac.auth.role_hierarchy import AdminRole, inherited_permissions
from photo_rbac.crud.admin_role_grant import AdminRoleStore
from photo_rbac.errors import (
    DuplicateGrantError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from photo_rbac.models.admin_role_grant import AdminRoleGrant
from photo_rbac.schemas.admin_role_grant import AdminRoleGrantResponse, AdminRoleGrantUpdate


@pytest.mark.anyio
async def test_create_then_get_round_trip(role_store) -> None:
    user_id = uuid.uuid4()
    granted_by = uuid.uuid4()
    expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)

    await role_store.create(
        user_id,
        "moderator",
        {"exportData": True},
        granted_by=granted_by,
        expires_at=expires_at,
        allowed_ips=["203.0.113.0/24"],
    )
    grant = await role_store.get(user_id)

    assert grant is not None
    assert grant.role == "moderator"
    assert grant.permissions["exportData"] is True
    assert grant.permissions["moderateImages"] is True
    assert grant.permissions["editUsers"] is False
    assert len(grant.permissions) == len(AdminPermission)
    assert grant.granted_by == granted_by
    assert grant.expires_at == expires_at
    assert grant.active is True
    assert grant.allowed_ips == ["203.0.113.0/24"]
    assert grant.is_ip_restricted


@pytest.mark.anyio
async def test_get_missing_user_returns_none(role_store) -> None:
    assert await role_store.get(uuid.uuid4()) is None


@pytest.mark.anyio
async def test_create_accepts_string_user_id(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(str(user_id), AdminRole.ADMIN)
    assert (await role_store.get(user_id)).role == "admin"


@pytest.mark.anyio
async def test_admin_grant_holds_every_moderator_key(role_store) -> None:
    user_id = uuid.uuid4()
    grant = await role_store.create(user_id, "admin", {"viewUsers": False})

    for permission in inherited_permissions(AdminRole.MODERATOR):
        assert grant.permissions[permission.value] is True


@pytest.mark.anyio
async def test_duplicate_create_fails_and_keeps_existing(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator", {"exportData": True})

    with pytest.raises(ValidationError, match="already has an admin role grant"):
        await role_store.create(user_id, "super_admin")

    grant = await role_store.get(user_id)
    assert grant.role == "moderator"
    assert grant.permissions["exportData"] is True


@pytest.mark.anyio
async def test_duplicate_create_fails_for_suspended_grant(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator", active=False)

    with pytest.raises(ValidationError):
        await role_store.create(user_id, "admin")


@pytest.mark.anyio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"role": "owner"},
        {"role": "admin", "permissions": {"manageUsers": True}},
        {"role": "admin", "permissions": {"exportData": "yes"}},
        {"role": "admin", "allowed_ips": ["not-an-ip"]},
        {"role": "admin", "active": "true"},
    ],
)
async def test_create_rejects_invalid_input(role_store, kwargs) -> None:
    user_id = uuid.uuid4()
    with pytest.raises(ValidationError):
        await role_store.create(user_id, **kwargs)
    assert await role_store.get(user_id) is None


@pytest.mark.anyio
async def test_create_rejects_invalid_user_id(role_store) -> None:
    with pytest.raises(ValidationError, match="Invalid user id"):
        await role_store.create("not-a-uuid", "admin")


@pytest.mark.anyio
async def test_update_cannot_clear_inherited_key(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "admin")

    grant = await role_store.update(user_id, {"permissions": {"editUsers": False}})

    assert grant.permissions["editUsers"] is True
    assert (await role_store.get(user_id)).permissions["editUsers"] is True


@pytest.mark.anyio
async def test_update_merges_supplied_keys(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator", {"exportData": True})

    grant = await role_store.update(user_id, {"permissions": {"banUsers": True}})

    assert grant.permissions["exportData"] is True
    assert grant.permissions["banUsers"] is True


@pytest.mark.anyio
async def test_downgrade_keeps_optional_permissions(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "super_admin")

    grant = await role_store.update(user_id, AdminRoleGrantUpdate(role=AdminRole.MODERATOR))

    assert grant.role == "moderator"
    assert grant.permissions["deleteAdmins"] is True
    assert grant.permissions["moderateImages"] is True


@pytest.mark.anyio
async def test_upgrade_forces_new_inherited_keys(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator")

    grant = await role_store.update(user_id, {"role": "admin"})

    assert grant.permissions["editUsers"] is True
    assert grant.permissions["createAdmins"] is False


@pytest.mark.anyio
async def test_update_active_expiry_and_ips(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(
        user_id,
        "admin",
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
        allowed_ips=["10.0.0.0/8"],
    )

    await role_store.update(user_id, {"active": False, "allowed_ips": []})
    grant = await role_store.get(user_id)
    assert grant.active is False
    assert grant.allowed_ips == []
    assert grant.expires_at is not None

    await role_store.update(user_id, {"expires_at": None})
    assert (await role_store.get(user_id)).expires_at is None


@pytest.mark.anyio
async def test_update_without_fields_leaves_grant_unchanged(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator", {"exportData": True}, allowed_ips=["10.0.0.1"])

    grant = await role_store.update(user_id, {"role": None, "active": None})

    assert grant.role == "moderator"
    assert grant.active is True
    assert grant.allowed_ips == ["10.0.0.1"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "changes",
    [
        {"role": "owner"},
        {"permissions": {"manageUsers": True}},
        {"permissions": {"exportData": 1}},
        {"allowed_ips": ["10.0.0.0/40"]},
        {"unknown_field": True},
    ],
)
async def test_update_rejects_invalid_changes(role_store, changes) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator")

    with pytest.raises(ValidationError):
        await role_store.update(user_id, changes)

    assert (await role_store.get(user_id)).role == "moderator"


@pytest.mark.anyio
async def test_update_missing_user_raises_not_found(role_store) -> None:
    with pytest.raises(NotFoundError):
        await role_store.update(uuid.uuid4(), {"active": False})


@pytest.mark.anyio
async def test_delete_removes_grant(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "admin")

    await role_store.delete(user_id)

    assert await role_store.get(user_id) is None
    with pytest.raises(NotFoundError):
        await role_store.delete(user_id)


@pytest.mark.anyio
async def test_create_after_delete_is_allowed(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "super_admin")
    await role_store.delete(user_id)

    grant = await role_store.create(user_id, "moderator")

    assert grant.role == "moderator"
    assert grant.permissions["deleteAdmins"] is False


@pytest.mark.anyio
async def test_list_all_returns_newest_first(session_factory) -> None:
    ticks = iter(
        datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minute)
        for minute in range(10)
    )
    store = AdminRoleStore(session_factory, clock=lambda: next(ticks))
    first, second = uuid.uuid4(), uuid.uuid4()
    await store.create(first, "moderator")
    await store.create(second, "admin")

    grants = await store.list_all()

    assert [grant.user_id for grant in grants] == [second, first]


def _failing_session_factory():
    session = MagicMock()
    session.__aenter__.side_effect = OperationalError("SELECT 1", {}, Exception("database is locked"))
    return MagicMock(return_value=session)


@pytest.mark.anyio
async def test_store_failure_raises_store_error() -> None:
    store = AdminRoleStore(_failing_session_factory())

    with pytest.raises(StoreError) as excinfo:
        await store.get(uuid.uuid4())
    assert excinfo.value.status_code == 503

    with pytest.raises(StoreError):
        await store.create(uuid.uuid4(), "admin")


@pytest.mark.anyio
async def test_concurrent_creates_for_one_user_yield_one_grant(role_store) -> None:
    user_id = uuid.uuid4()
    roles = ["moderator", "admin", "super_admin", "admin", "moderator"]

    results = await asyncio.gather(
        *(role_store.create(user_id, role) for role in roles),
        return_exceptions=True,
    )

    created = [result for result in results if isinstance(result, AdminRoleGrant)]
    rejected = [result for result in results if isinstance(result, DuplicateGrantError)]
    assert len(created) == 1
    assert len(rejected) == len(roles) - 1
    assert (await role_store.get(user_id)).role == created[0].role
    assert len(await role_store.list_all()) == 1


@pytest.mark.anyio
async def test_concurrent_updates_for_one_user_are_not_lost(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator")
    optional = ["exportData", "banUsers", "editImages", "createCategories", "manageSettings"]

    await asyncio.gather(
        *(role_store.update(user_id, {"permissions": {key: True}}) for key in optional)
    )

    grant = await role_store.get(user_id)
    for key in optional:
        assert grant.permissions[key] is True
    assert grant.permissions["deleteAdmins"] is False


@pytest.mark.anyio
async def test_response_model_reads_stored_grant(role_store) -> None:
    user_id = uuid.uuid4()
    await role_store.create(user_id, "moderator", allowed_ips=["10.0.0.1"])

    response = AdminRoleGrantResponse.model_validate(await role_store.get(user_id))

    assert response.user_id == user_id
    assert response.role is AdminRole.MODERATOR
    assert response.allowed_ips == ["10.0.0.1"]
    assert response.created_at.tzinfo is not None
