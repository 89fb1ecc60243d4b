from pydantic import BaseModel


class PermissionRead(BaseModel):
    key: str
    label: str


class PermissionGroupRead(BaseModel):
    label: str
    permissions: list[PermissionRead]


class RoleTierRead(BaseModel):
    role: str
    description: str
    inherited: list[str]


class PermissionCatalogRead(BaseModel):
    groups: list[PermissionGroupRead]
    roles: list[RoleTierRead]
