from .network import matches, parse_network_spec, validate_allow_list
from .permission_catalog import AdminPermission, all_keys, groups
from .role_hierarchy import (
    AdminRole,
    ROLE_ORDER,
    apply_forced_inheritance,
    inherited_from_tier,
    inherited_permissions,
    is_inherited,
    role_description,
)

__all__ = [
    "AdminPermission",
    "AdminRole",
    "ROLE_ORDER",
    "all_keys",
    "apply_forced_inheritance",
    "groups",
    "inherited_from_tier",
    "inherited_permissions",
    "is_inherited",
    "matches",
    "parse_network_spec",
    "role_description",
    "validate_allow_list",
]
