from .base import Base
from .admin_role_grant import AdminRoleGrant

__all__ = [
    "Base",
    "AdminRoleGrant",
]
