"""
Admin Dependencies - permission checks for the grant management endpoints.

Grant management is not self-authorizing in the store; these dependencies
are the caller-side check, run on the acting principal before any mutation.
"""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Request

from photo_rbac.auth.permission_catalog import AdminPermission
from photo_rbac.dependencies import (
    get_authorization_engine,
    get_client_address,
    get_current_principal,
)
from photo_rbac.errors import PermissionError
from photo_rbac.services.admin.authorization_service import (
    AuthorizationEngine,
    Principal,
)

logger = logging.getLogger("photo_rbac.admin")


def require_admin_permission(permission: AdminPermission) -> Callable:
    """
    Enforce a single admin permission on the acting principal.

    Args:
        permission: The required AdminPermission

    Returns:
        Dependency returning the principal once the check passes
    """
    async def dependency(
        request: Request,
        principal: Principal = Depends(get_current_principal),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
        client_address: str | None = Depends(get_client_address),
    ) -> Principal:
        verdict = await engine.check(principal, permission, client_address)
        if not verdict.allowed:
            logger.warning(
                "Admin permission denied: %s %s user=%s permission=%s reason=%s",
                request.method,
                request.url.path,
                principal.id,
                permission.value,
                verdict.reason.value,
            )
            raise PermissionError.for_permission(permission.value, verdict.reason.value)
        return principal

    return dependency
