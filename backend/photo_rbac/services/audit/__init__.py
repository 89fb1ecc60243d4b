from .audit_service import AuditService, GrantSnapshot, changed_fields

__all__ = ["AuditService", "GrantSnapshot", "changed_fields"]
