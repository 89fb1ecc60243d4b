"""
Admin Router - admin role grant management and authorization checks.

- GET    /admin/permissions        - Permission catalog and tier inheritance
- GET    /admin/roles              - List grants (viewAdmins)
- GET    /admin/roles/{user_id}    - Own grant, or any grant with viewAdmins
- POST   /admin/roles              - Create grant (createAdmins)
- PUT    /admin/roles/{user_id}    - Partial update (editAdmins)
- DELETE /admin/roles/{user_id}    - Revoke grant (deleteAdmins)
- POST   /admin/authorize          - Verdict for one user and permission

Every write is audited with the grant state before and after it.
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from photo_rbac.admin.dependencies import require_admin_permission
from photo_rbac.auth.permission_catalog import AdminPermission, groups, label_for
from photo_rbac.auth.role_hierarchy import (
    ROLE_ORDER,
    inherited_permissions,
    role_description,
)
from photo_rbac.crud.admin_role_grant import AdminRoleStore
from photo_rbac.dependencies import (
    get_audit_service,
    get_authorization_engine,
    get_client_address,
    get_current_principal,
    get_role_store,
)
from photo_rbac.errors import GrantNotFoundError
from photo_rbac.schemas.admin_role_grant import (
    AdminRoleGrantCreate,
    AdminRoleGrantList,
    AdminRoleGrantResponse,
    AdminRoleGrantUpdate,
    AuthorizeRequest,
    VerdictResponse,
)
from photo_rbac.schemas.permission import (
    PermissionCatalogRead,
    PermissionGroupRead,
    PermissionRead,
    RoleTierRead,
)
from photo_rbac.services.admin.authorization_service import (
    AuthorizationEngine,
    Principal,
)
from photo_rbac.services.audit.audit_service import AuditService, GrantSnapshot

router = APIRouter(
    prefix="/admin",
    tags=["admin-roles"],
)


@router.get("/permissions", response_model=PermissionCatalogRead)
async def list_permissions(
    _: Principal = Depends(require_admin_permission(AdminPermission.VIEW_ADMINS)),
) -> PermissionCatalogRead:
    """Permission groups with labels, and what each tier inherits."""
    return PermissionCatalogRead(
        groups=[
            PermissionGroupRead(
                label=label,
                permissions=[
                    PermissionRead(key=key.value, label=label_for(key)) for key in keys
                ],
            )
            for label, keys in groups()
        ],
        roles=[
            RoleTierRead(
                role=role.value,
                description=role_description(role),
                inherited=sorted(key.value for key in inherited_permissions(role)),
            )
            for role in ROLE_ORDER
        ],
    )


@router.get("/roles", response_model=AdminRoleGrantList)
async def list_grants(
    _: Principal = Depends(require_admin_permission(AdminPermission.VIEW_ADMINS)),
    store: AdminRoleStore = Depends(get_role_store),
) -> AdminRoleGrantList:
    grants = await store.list_all()
    return AdminRoleGrantList(
        grants=[AdminRoleGrantResponse.model_validate(grant) for grant in grants],
        total=len(grants),
    )


@router.get("/roles/{user_id}", response_model=AdminRoleGrantResponse)
async def get_grant(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
    client_address: str | None = Depends(get_client_address),
    store: AdminRoleStore = Depends(get_role_store),
) -> AdminRoleGrantResponse:
    """Users may always read their own grant."""
    if user_id != principal.id:
        await engine.require_permission(
            principal, AdminPermission.VIEW_ADMINS, client_address
        )

    grant = await store.get(user_id)
    if grant is None:
        raise GrantNotFoundError(user_id)
    return AdminRoleGrantResponse.model_validate(grant)


@router.post(
    "/roles",
    response_model=AdminRoleGrantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_grant(
    payload: AdminRoleGrantCreate,
    principal: Principal = Depends(require_admin_permission(AdminPermission.CREATE_ADMINS)),
    store: AdminRoleStore = Depends(get_role_store),
    audit_service: AuditService = Depends(get_audit_service),
) -> AdminRoleGrantResponse:
    grant = await store.create(
        user_id=payload.user_id,
        role=payload.role,
        permissions=payload.permissions,
        granted_by=principal.id,
        expires_at=payload.expires_at,
        active=payload.active,
        allowed_ips=payload.allowed_ips,
    )
    audit_service.record_grant_change(
        actor_id=principal.id,
        action="create",
        user_id=grant.user_id,
        before=None,
        after=GrantSnapshot.of(grant),
    )
    return AdminRoleGrantResponse.model_validate(grant)


@router.put("/roles/{user_id}", response_model=AdminRoleGrantResponse)
async def update_grant(
    user_id: UUID,
    payload: AdminRoleGrantUpdate,
    principal: Principal = Depends(require_admin_permission(AdminPermission.EDIT_ADMINS)),
    store: AdminRoleStore = Depends(get_role_store),
    audit_service: AuditService = Depends(get_audit_service),
) -> AdminRoleGrantResponse:
    before = GrantSnapshot.of(await store.get(user_id))
    grant = await store.update(user_id, payload)
    audit_service.record_grant_change(
        actor_id=principal.id,
        action="update",
        user_id=user_id,
        before=before,
        after=GrantSnapshot.of(grant),
    )
    return AdminRoleGrantResponse.model_validate(grant)


@router.delete("/roles/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_grant(
    user_id: UUID,
    principal: Principal = Depends(require_admin_permission(AdminPermission.DELETE_ADMINS)),
    store: AdminRoleStore = Depends(get_role_store),
    audit_service: AuditService = Depends(get_audit_service),
) -> Response:
    before = GrantSnapshot.of(await store.get(user_id))
    await store.delete(user_id)
    audit_service.record_grant_change(
        actor_id=principal.id,
        action="delete",
        user_id=user_id,
        before=before,
        after=None,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/authorize", response_model=VerdictResponse)
async def authorize(
    payload: AuthorizeRequest,
    principal: Principal = Depends(get_current_principal),
    engine: AuthorizationEngine = Depends(get_authorization_engine),
    client_address: str | None = Depends(get_client_address),
) -> VerdictResponse:
    """Evaluate a permission for the caller, or for another user with viewAdmins.

    The global super admin flag is only taken from the authenticated caller.
    A self-check always uses the address the request came from; a body
    ``client_address`` is only honoured when checking another user.
    """
    subject = principal
    address = client_address
    if payload.user_id is not None and payload.user_id != principal.id:
        await engine.require_permission(
            principal, AdminPermission.VIEW_ADMINS, client_address
        )
        subject = Principal(id=payload.user_id)
        if payload.client_address is not None:
            address = payload.client_address

    verdict = await engine.check(subject, payload.permission, address)
    return VerdictResponse(
        allowed=verdict.allowed,
        decision=verdict.decision.value,
        reason=verdict.reason.value,
    )
