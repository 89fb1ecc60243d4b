"""
Permission Catalog - the closed set of admin permission keys.

Every capability an admin grant can carry is enumerated here. Adding a
capability means adding a member to ``AdminPermission``, placing it in a
group, and deciding its tier in ``role_hierarchy``. Nothing is inferred.

Groups exist for display only and carry no authorization meaning.
"""
from __future__ import annotations

from enum import Enum
from typing import Final


class AdminPermission(str, Enum):
    """Admin permission keys. Values are the persisted map keys."""

    # User management
    VIEW_USERS = "viewUsers"
    EDIT_USERS = "editUsers"
    DELETE_USERS = "deleteUsers"
    BAN_USERS = "banUsers"
    UNBAN_USERS = "unbanUsers"

    # Image management
    VIEW_IMAGES = "viewImages"
    EDIT_IMAGES = "editImages"
    DELETE_IMAGES = "deleteImages"
    MODERATE_IMAGES = "moderateImages"

    # Category management
    VIEW_CATEGORIES = "viewCategories"
    CREATE_CATEGORIES = "createCategories"
    EDIT_CATEGORIES = "editCategories"
    DELETE_CATEGORIES = "deleteCategories"

    # Admin management
    VIEW_ADMINS = "viewAdmins"
    CREATE_ADMINS = "createAdmins"
    EDIT_ADMINS = "editAdmins"
    DELETE_ADMINS = "deleteAdmins"

    # Dashboard & analytics
    VIEW_DASHBOARD = "viewDashboard"
    VIEW_ANALYTICS = "viewAnalytics"

    # Collections
    VIEW_COLLECTIONS = "viewCollections"
    MANAGE_COLLECTIONS = "manageCollections"

    # Favorites
    MANAGE_FAVORITES = "manageFavorites"

    # Content moderation
    MODERATE_CONTENT = "moderateContent"

    # System & logs
    VIEW_LOGS = "viewLogs"
    EXPORT_DATA = "exportData"
    MANAGE_SETTINGS = "manageSettings"


PERMISSION_LABELS: Final[dict[AdminPermission, str]] = {
    AdminPermission.VIEW_USERS: "View users",
    AdminPermission.EDIT_USERS: "Edit users",
    AdminPermission.DELETE_USERS: "Delete users",
    AdminPermission.BAN_USERS: "Ban users",
    AdminPermission.UNBAN_USERS: "Unban users",
    AdminPermission.VIEW_IMAGES: "View images",
    AdminPermission.EDIT_IMAGES: "Edit images",
    AdminPermission.DELETE_IMAGES: "Delete images",
    AdminPermission.MODERATE_IMAGES: "Moderate images",
    AdminPermission.VIEW_CATEGORIES: "View categories",
    AdminPermission.CREATE_CATEGORIES: "Create categories",
    AdminPermission.EDIT_CATEGORIES: "Edit categories",
    AdminPermission.DELETE_CATEGORIES: "Delete categories",
    AdminPermission.VIEW_ADMINS: "View admins",
    AdminPermission.CREATE_ADMINS: "Create admins",
    AdminPermission.EDIT_ADMINS: "Edit admins",
    AdminPermission.DELETE_ADMINS: "Delete admins",
    AdminPermission.VIEW_DASHBOARD: "View dashboard",
    AdminPermission.VIEW_ANALYTICS: "View analytics",
    AdminPermission.VIEW_COLLECTIONS: "View collections",
    AdminPermission.MANAGE_COLLECTIONS: "Manage collections",
    AdminPermission.MANAGE_FAVORITES: "Manage favorites",
    AdminPermission.MODERATE_CONTENT: "Moderate content",
    AdminPermission.VIEW_LOGS: "View logs",
    AdminPermission.EXPORT_DATA: "Export data",
    AdminPermission.MANAGE_SETTINGS: "Manage settings",
}

PERMISSION_GROUPS: Final[tuple[tuple[str, tuple[AdminPermission, ...]], ...]] = (
    ("User management", (
        AdminPermission.VIEW_USERS,
        AdminPermission.EDIT_USERS,
        AdminPermission.DELETE_USERS,
        AdminPermission.BAN_USERS,
        AdminPermission.UNBAN_USERS,
    )),
    ("Image management", (
        AdminPermission.VIEW_IMAGES,
        AdminPermission.EDIT_IMAGES,
        AdminPermission.DELETE_IMAGES,
        AdminPermission.MODERATE_IMAGES,
    )),
    ("Category management", (
        AdminPermission.VIEW_CATEGORIES,
        AdminPermission.CREATE_CATEGORIES,
        AdminPermission.EDIT_CATEGORIES,
        AdminPermission.DELETE_CATEGORIES,
    )),
    ("Admin management", (
        AdminPermission.VIEW_ADMINS,
        AdminPermission.CREATE_ADMINS,
        AdminPermission.EDIT_ADMINS,
        AdminPermission.DELETE_ADMINS,
    )),
    ("Dashboard & analytics", (
        AdminPermission.VIEW_DASHBOARD,
        AdminPermission.VIEW_ANALYTICS,
    )),
    ("Collections", (
        AdminPermission.VIEW_COLLECTIONS,
        AdminPermission.MANAGE_COLLECTIONS,
    )),
    ("Favorites", (
        AdminPermission.MANAGE_FAVORITES,
    )),
    ("Content moderation", (
        AdminPermission.MODERATE_CONTENT,
    )),
    ("System", (
        AdminPermission.VIEW_LOGS,
        AdminPermission.EXPORT_DATA,
        AdminPermission.MANAGE_SETTINGS,
    )),
)

ALL_PERMISSIONS: Final[frozenset[AdminPermission]] = frozenset(AdminPermission)


def all_keys() -> frozenset[AdminPermission]:
    return ALL_PERMISSIONS


def groups() -> list[tuple[str, list[AdminPermission]]]:
    return [(label, list(keys)) for label, keys in PERMISSION_GROUPS]


def label_for(permission: AdminPermission) -> str:
    return PERMISSION_LABELS[permission]


def parse_permission(value: str | AdminPermission) -> AdminPermission:
    """Resolve a persisted or caller-supplied key to an ``AdminPermission``.

    Raises:
        ValueError: If the key is not in the catalog
    """
    if isinstance(value, AdminPermission):
        return value
    try:
        return AdminPermission(value)
    except ValueError:
        raise ValueError(f"Invalid permission '{value}'") from None


# Validate the catalog at module load time (fail-fast)
def _validate_catalog() -> None:
    errors = []

    grouped = [key for _, keys in PERMISSION_GROUPS for key in keys]
    duplicates = {key for key in grouped if grouped.count(key) > 1}
    if duplicates:
        errors.append(f"Permissions listed in more than one group: {sorted(duplicates)}")

    ungrouped = ALL_PERMISSIONS - set(grouped)
    if ungrouped:
        errors.append(f"Permissions missing from groups: {sorted(ungrouped)}")

    unlabeled = ALL_PERMISSIONS - PERMISSION_LABELS.keys()
    if unlabeled:
        errors.append(f"Permissions missing labels: {sorted(unlabeled)}")

    if errors:
        raise RuntimeError(
            "Permission catalog validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


_validate_catalog()
