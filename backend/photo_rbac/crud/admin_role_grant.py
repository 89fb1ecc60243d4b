import asyncio
import logging
import uuid
import weakref
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..auth.network import validate_allow_list
from ..auth.permission_catalog import ALL_PERMISSIONS
from ..auth.role_hierarchy import AdminRole, apply_forced_inheritance, parse_role
from ..errors import DuplicateGrantError, GrantNotFoundError, StoreError, ValidationError
from ..models.admin_role_grant import AdminRoleGrant, as_utc
from ..schemas.admin_role_grant import AdminRoleGrantUpdate

logger = logging.getLogger("photo_rbac.store")

_CATALOG_KEYS = frozenset(permission.value for permission in ALL_PERMISSIONS)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_user_id(value: uuid.UUID | str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid user id '{value}'") from None


class AdminRoleStore:
    """Durable storage for admin role grants, one grant per user.

    Every call opens its own session and commits before returning, so no
    cached grant is authoritative across calls. Writes for the same user are
    serialized in-process; the unique ``user_id`` column and row locks on
    update cover concurrent writers in other processes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or _utcnow
        self._user_locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: uuid.UUID) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Role store %s failed: %s", operation, exc)
            raise StoreError(details={"operation": operation}) from exc
        except OSError as exc:
            logger.error("Role store %s failed: %s", operation, exc)
            raise StoreError(details={"operation": operation}) from exc

    @staticmethod
    async def _select(
        session: AsyncSession, user_id: uuid.UUID, for_update: bool = False
    ) -> AdminRoleGrant | None:
        query = select(AdminRoleGrant).where(AdminRoleGrant.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def create(
        self,
        user_id: uuid.UUID | str,
        role: AdminRole | str,
        permissions: Mapping[str, bool] | None = None,
        granted_by: uuid.UUID | None = None,
        expires_at: datetime | None = None,
        active: bool = True,
        allowed_ips: Sequence[str] | None = None,
    ) -> AdminRoleGrant:
        """Create the grant for ``user_id``.

        Inherited permissions of ``role`` are written as ``True`` before the
        record is persisted.

        Raises:
            ValidationError: Invalid role, permission key, allowed IP entry,
                or the user already has a grant (DuplicateGrantError)
            StoreError: The store could not be written
        """
        user_id = coerce_user_id(user_id)
        try:
            tier = parse_role(role)
            stored_permissions = apply_forced_inheritance(tier, permissions)
            ips = validate_allow_list(allowed_ips or [])
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if not isinstance(active, bool):
            raise ValidationError("active must be true or false")

        async with self._lock_for(user_id):
            async with self._session("create") as session:
                if await self._select(session, user_id) is not None:
                    raise DuplicateGrantError(user_id)
                now = self._clock()
                grant = AdminRoleGrant(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    role=tier.value,
                    permissions=stored_permissions,
                    granted_by=granted_by,
                    expires_at=as_utc(expires_at),
                    active=active,
                    allowed_ips=ips,
                    created_at=now,
                    updated_at=now,
                )
                session.add(grant)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise DuplicateGrantError(user_id) from exc

        logger.info("Created %s grant for user %s", tier.value, user_id)
        return grant

    async def update(
        self,
        user_id: uuid.UUID | str,
        changes: AdminRoleGrantUpdate | Mapping[str, Any],
    ) -> AdminRoleGrant:
        """Apply a partial update to the grant for ``user_id``.

        Supplied permission keys are merged over the stored map, then the
        inherited set of the resulting role is forced back to ``True``.
        Optional permissions are kept across a role downgrade.

        Raises:
            ValidationError: The update payload is invalid
            GrantNotFoundError: The user has no grant
            StoreError: The store could not be read or written
        """
        user_id = coerce_user_id(user_id)
        if not isinstance(changes, AdminRoleGrantUpdate):
            try:
                changes = AdminRoleGrantUpdate.model_validate(dict(changes))
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Invalid admin role update",
                    details=exc.errors(include_url=False, include_context=False),
                ) from exc
        fields = changes.changes()

        async with self._lock_for(user_id):
            async with self._session("update") as session:
                grant = await self._select(session, user_id, for_update=True)
                if grant is None:
                    raise GrantNotFoundError(user_id)

                tier = fields.get("role") or parse_role(grant.role)
                merged = {
                    key: value
                    for key, value in (grant.permissions or {}).items()
                    if key in _CATALOG_KEYS and isinstance(value, bool)
                }
                merged.update(fields.get("permissions", {}))

                grant.role = tier.value
                grant.permissions = apply_forced_inheritance(tier, merged)
                if "expires_at" in fields:
                    grant.expires_at = as_utc(fields["expires_at"])
                if "active" in fields:
                    grant.active = fields["active"]
                if "allowed_ips" in fields:
                    grant.allowed_ips = list(fields["allowed_ips"])
                grant.updated_at = self._clock()

                await session.commit()

        logger.info(
            "Updated grant for user %s (fields: %s)",
            user_id,
            ", ".join(sorted(fields)) or "none",
        )
        return grant

    async def delete(self, user_id: uuid.UUID | str) -> None:
        """Remove the grant for ``user_id``; its permissions end immediately.

        Raises:
            GrantNotFoundError: The user has no grant
            StoreError: The store could not be written
        """
        user_id = coerce_user_id(user_id)
        async with self._lock_for(user_id):
            async with self._session("delete") as session:
                grant = await self._select(session, user_id, for_update=True)
                if grant is None:
                    raise GrantNotFoundError(user_id)
                await session.delete(grant)
                await session.commit()

        logger.info("Deleted grant for user %s", user_id)

    async def get(self, user_id: uuid.UUID | str) -> AdminRoleGrant | None:
        user_id = coerce_user_id(user_id)
        async with self._session("get") as session:
            return await self._select(session, user_id)

    async def list_all(self) -> list[AdminRoleGrant]:
        async with self._session("list") as session:
            result = await session.execute(
                select(AdminRoleGrant).order_by(AdminRoleGrant.created_at.desc())
            )
            return list(result.scalars().all())
