from fastapi import Request

from .crud.admin_role_grant import AdminRoleStore
from .errors import AuthError
from .services.admin.authorization_service import AuthorizationEngine, Principal
from .services.audit.audit_service import AuditService


def get_role_store(request: Request) -> AdminRoleStore:
    return request.app.state.role_store


def get_authorization_engine(request: Request) -> AuthorizationEngine:
    return request.app.state.authorization_engine


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


def get_current_principal(request: Request) -> Principal:
    """The authenticated caller.

    Authentication happens upstream; it stores the ``Principal`` on
    ``request.state.principal``.
    """
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise AuthError()
    return principal


def get_client_address(request: Request) -> str | None:
    if request.app.state.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client is None:
        return None
    return request.client.host
