"""
Error hierarchy shared by the store, the authorization engine and the HTTP layer.

Every error renders as ``{"error": {"code", "message", "details"}}``.
"""
from typing import Any
from uuid import UUID

from fastapi import status


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(self, message: str | None = None, *, details: Any | None = None):
        if message is not None:
            self.message = message
        if details is not None:
            self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, self.details)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Validation error"


class DuplicateGrantError(ValidationError):
    """The user already holds a grant, active or not."""

    message = "User already has an admin role grant"

    def __init__(self, user_id: UUID):
        super().__init__(details={"user_id": str(user_id)})


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class GrantNotFoundError(NotFoundError):
    message = "User has no admin role grant"

    def __init__(self, user_id: UUID):
        super().__init__(details={"user_id": str(user_id)})


class AuthError(AppError):
    code = "AUTH_ERROR"
    message = "Not authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionError(AppError):  # type: ignore[override]
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN

    @classmethod
    def for_permission(cls, permission: str, reason: str) -> "PermissionError":
        return cls(
            f"Permission denied: {permission} required",
            details={"permission": permission, "reason": reason},
        )


class StoreError(AppError):
    """The grant store could not be read or written.

    Never a verdict: callers must not treat this as a deny.
    """

    code = "STORE_UNAVAILABLE"
    message = "Role store unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


_CODES_BY_STATUS: dict[int, str] = {
    error.status_code: error.code
    for error in (ValidationError, AuthError, PermissionError, NotFoundError, StoreError)
}
_CODES_BY_STATUS[status.HTTP_422_UNPROCESSABLE_ENTITY] = ValidationError.code


def error_payload(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}


def resolve_error_code(status_code: int) -> str:
    """Error code for an HTTP status raised outside the ``AppError`` hierarchy."""
    code = _CODES_BY_STATUS.get(status_code)
    if code is not None:
        return code
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return InternalError.code
    return "UNKNOWN_ERROR"
