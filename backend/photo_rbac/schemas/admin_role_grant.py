import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

from ..auth.network import validate_allow_list
from ..auth.permission_catalog import parse_permission
from ..auth.role_hierarchy import AdminRole


def _check_permission_keys(value: dict[str, bool] | None) -> dict[str, bool] | None:
    if value is None:
        return value
    return {parse_permission(key).value: flag for key, flag in value.items()}


class AdminRoleGrantCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: uuid.UUID
    role: AdminRole = AdminRole.ADMIN
    permissions: dict[str, StrictBool] = Field(default_factory=dict)
    expires_at: datetime | None = None
    active: StrictBool = True
    allowed_ips: list[str] = Field(default_factory=list)

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, value):
        return _check_permission_keys(value)

    @field_validator("allowed_ips")
    @classmethod
    def check_allowed_ips(cls, value: list[str]) -> list[str]:
        return validate_allow_list(value)


class AdminRoleGrantUpdate(BaseModel):
    """Partial update. Only fields present in the payload change.

    ``expires_at: null`` removes the expiry; ``null`` for any other field is
    the same as leaving it out.
    """

    model_config = ConfigDict(extra="forbid")

    role: AdminRole | None = None
    permissions: dict[str, StrictBool] | None = None
    expires_at: datetime | None = None
    active: StrictBool | None = None
    allowed_ips: list[str] | None = None

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, value):
        return _check_permission_keys(value)

    @field_validator("allowed_ips")
    @classmethod
    def check_allowed_ips(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return validate_allow_list(value)

    def changes(self) -> dict:
        fields = self.model_dump(exclude_unset=True)
        return {
            name: value
            for name, value in fields.items()
            if value is not None or name == "expires_at"
        }


class AdminRoleGrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    role: AdminRole
    permissions: dict[str, bool]
    granted_by: uuid.UUID | None
    expires_at: datetime | None
    active: bool
    allowed_ips: list[str]
    created_at: datetime
    updated_at: datetime


class AdminRoleGrantList(BaseModel):
    grants: list[AdminRoleGrantResponse]
    total: int


class AuthorizeRequest(BaseModel):
    """Omitting ``user_id`` checks the caller.

    ``client_address`` only applies when checking another user.
    """

    user_id: uuid.UUID | None = None
    permission: str = Field(..., min_length=1, max_length=100)
    client_address: str | None = None


class VerdictResponse(BaseModel):
    allowed: bool
    decision: str
    reason: str
