"""
Role Hierarchy - what each admin tier grants unconditionally.

Tiers are strictly ordered ``moderator < admin < super_admin`` and each tier
inherits everything granted to the tiers below it:

    inherited(moderator) <= inherited(admin) <= inherited(super_admin) == all keys

Inherited permissions cannot be cleared on a grant. ``apply_forced_inheritance``
writes them into the stored permission map whenever a grant is created or
updated, so the stored map always agrees with read-time evaluation.
"""
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Final

from .permission_catalog import ALL_PERMISSIONS, AdminPermission, parse_permission


class AdminRole(str, Enum):
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


# Lowest tier first
ROLE_ORDER: Final[tuple[AdminRole, ...]] = (
    AdminRole.MODERATOR,
    AdminRole.ADMIN,
    AdminRole.SUPER_ADMIN,
)

MODERATOR_PERMISSIONS: Final[frozenset[AdminPermission]] = frozenset({
    AdminPermission.VIEW_DASHBOARD,
    AdminPermission.VIEW_ANALYTICS,
    AdminPermission.VIEW_USERS,
    AdminPermission.VIEW_IMAGES,
    AdminPermission.VIEW_CATEGORIES,
    AdminPermission.VIEW_COLLECTIONS,
    AdminPermission.MODERATE_IMAGES,
    AdminPermission.MODERATE_CONTENT,
    AdminPermission.MANAGE_FAVORITES,
    AdminPermission.VIEW_LOGS,
})

# Granted on top of the moderator set
ADMIN_ONLY_PERMISSIONS: Final[frozenset[AdminPermission]] = frozenset({
    AdminPermission.EDIT_USERS,
    AdminPermission.DELETE_USERS,
    AdminPermission.BAN_USERS,
    AdminPermission.UNBAN_USERS,
    AdminPermission.EDIT_IMAGES,
    AdminPermission.DELETE_IMAGES,
    AdminPermission.CREATE_CATEGORIES,
    AdminPermission.EDIT_CATEGORIES,
    AdminPermission.DELETE_CATEGORIES,
    AdminPermission.MANAGE_COLLECTIONS,
    AdminPermission.EXPORT_DATA,
    AdminPermission.MANAGE_SETTINGS,
    AdminPermission.VIEW_ADMINS,
})

INHERITED_PERMISSIONS: Final[dict[AdminRole, frozenset[AdminPermission]]] = {
    AdminRole.MODERATOR: MODERATOR_PERMISSIONS,
    AdminRole.ADMIN: MODERATOR_PERMISSIONS | ADMIN_ONLY_PERMISSIONS,
    AdminRole.SUPER_ADMIN: ALL_PERMISSIONS,
}

ROLE_DESCRIPTIONS: Final[dict[AdminRole, str]] = {
    AdminRole.MODERATOR: (
        "Moderators can view content, moderate images and content, and view logs. "
        "They cannot modify users, delete content, or manage system settings."
    ),
    AdminRole.ADMIN: (
        "Admins have full content management permissions including user management, "
        "content deletion, and system settings. They cannot create, edit, or delete admin roles."
    ),
    AdminRole.SUPER_ADMIN: (
        "Super admins have all permissions including full admin role management."
    ),
}


def parse_role(value: str | AdminRole) -> AdminRole:
    """
    Resolve a role name to an ``AdminRole``.

    Raises:
        ValueError: If the role is not one of the three tiers
    """
    if isinstance(value, AdminRole):
        return value
    try:
        return AdminRole(value)
    except ValueError:
        raise ValueError(
            f"Invalid role '{value}'. "
            f"Must be one of: {', '.join(role.value for role in ROLE_ORDER)}"
        ) from None


def role_rank(role: AdminRole) -> int:
    return ROLE_ORDER.index(role)


def inherited_permissions(role: AdminRole) -> frozenset[AdminPermission]:
    return INHERITED_PERMISSIONS[role]


def is_inherited(role: AdminRole, permission: AdminPermission) -> bool:
    return permission in INHERITED_PERMISSIONS[role]


def inherited_from_tier(role: AdminRole, permission: AdminPermission) -> AdminRole | None:
    """Return the lowest tier at or below ``role`` that inherits ``permission``.

    ``None`` means the permission is optional for ``role``: it is only held
    through an explicit grant.
    """
    for tier in ROLE_ORDER[: role_rank(role) + 1]:
        if permission in INHERITED_PERMISSIONS[tier]:
            return tier
    return None


def role_description(role: AdminRole) -> str:
    return ROLE_DESCRIPTIONS[role]


def apply_forced_inheritance(
    role: AdminRole,
    permissions: Mapping[str | AdminPermission, bool] | None = None,
) -> dict[str, bool]:
    """Build the full stored permission map for a grant of ``role``.

    Every catalog key is present. Keys inherited by ``role`` are forced to
    ``True``; other keys keep the supplied value and default to ``False``.
    Optional permissions survive a downgrade: nothing here clears a key.

    Raises:
        ValueError: If a key is not in the catalog or a value is not a bool
    """
    normalized: dict[AdminPermission, bool] = {}
    for key, value in (permissions or {}).items():
        permission = parse_permission(key)
        if not isinstance(value, bool):
            raise ValueError(f"Permission '{permission.value}' must be true or false")
        normalized[permission] = value

    inherited = INHERITED_PERMISSIONS[role]
    return {
        permission.value: permission in inherited or normalized.get(permission, False)
        for permission in AdminPermission
    }


def effective_permissions(
    role: AdminRole,
    permissions: Mapping[str, bool] | None,
) -> frozenset[AdminPermission]:
    """Union of the tier's inherited set and the explicitly granted keys.

    Stored keys that are no longer in the catalog are ignored.
    """
    explicit = set()
    for key, value in (permissions or {}).items():
        if value is not True:
            continue
        try:
            explicit.add(parse_permission(key))
        except ValueError:
            continue
    return INHERITED_PERMISSIONS[role] | frozenset(explicit)


def _validate_hierarchy() -> None:
    errors = []
    for lower, higher in zip(ROLE_ORDER, ROLE_ORDER[1:]):
        if not INHERITED_PERMISSIONS[lower] <= INHERITED_PERMISSIONS[higher]:
            missing = INHERITED_PERMISSIONS[lower] - INHERITED_PERMISSIONS[higher]
            errors.append(
                f"Role '{higher.value}' does not inherit from '{lower.value}': {sorted(missing)}"
            )
    if INHERITED_PERMISSIONS[AdminRole.SUPER_ADMIN] != ALL_PERMISSIONS:
        errors.append("Role 'super_admin' must inherit every catalog permission")
    if errors:
        raise RuntimeError(
            "Role hierarchy validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


_validate_hierarchy()
