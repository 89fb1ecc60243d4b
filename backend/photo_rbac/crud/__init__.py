from .admin_role_grant import AdminRoleStore

__all__ = ["AdminRoleStore"]
