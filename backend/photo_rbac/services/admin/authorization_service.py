import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from ...auth import network
from ...auth.permission_catalog import ALL_PERMISSIONS, AdminPermission, parse_permission
from ...auth.role_hierarchy import effective_permissions, parse_role
from ...errors import PermissionError
from ...models.admin_role_grant import AdminRoleGrant, as_utc

logger = logging.getLogger("photo_rbac.authz")


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class DecisionReason(str, Enum):
    GLOBAL_SUPER_ADMIN = "global-super-admin"
    GRANTED = "granted"
    NO_GRANT = "no-grant"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    IP_RESTRICTED = "ip-restricted"
    PERMISSION_NOT_GRANTED = "permission-not-granted"
    UNKNOWN_PERMISSION = "unknown-permission"


@dataclass(frozen=True)
class Verdict:
    decision: Decision
    reason: DecisionReason

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW

    @classmethod
    def allow(cls, reason: DecisionReason) -> "Verdict":
        return cls(Decision.ALLOW, reason)

    @classmethod
    def deny(cls, reason: DecisionReason) -> "Verdict":
        return cls(Decision.DENY, reason)


@dataclass(frozen=True)
class Principal:
    """The user a check is about.

    ``is_super_admin`` is the global flag on the user record, distinct from
    a ``super_admin`` grant; when set it bypasses grant evaluation entirely.
    """

    id: uuid.UUID
    is_super_admin: bool = False


class GrantReader(Protocol):
    async def get(self, user_id: uuid.UUID) -> AdminRoleGrant | None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_principal(user: Principal | uuid.UUID) -> Principal:
    if isinstance(user, Principal):
        return user
    return Principal(id=user)


class AuthorizationEngine:
    """Answers whether a user, from an address, at a time, may use a permission.

    Stateless between calls: every check reads the current grant from the
    store. Store failures propagate as ``StoreError`` and are never turned
    into a deny.

    Gates run in a fixed order before any permission lookup:
    global flag, grant present, active, not expired, address allowed.
    A suspended or expired grant therefore denies everything, even for the
    ``super_admin`` tier.
    """

    def __init__(
        self,
        store: GrantReader,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self._clock = clock or _utcnow

    async def check(
        self,
        user: Principal | uuid.UUID,
        permission: AdminPermission | str,
        client_address: str | None = None,
        now: datetime | None = None,
    ) -> Verdict:
        """Evaluate one permission for one user.

        Args:
            user: The principal, or a bare user id (no global super admin flag)
            permission: Catalog key, as enum member or persisted string
            client_address: Address the request came from
            now: Evaluation time; defaults to the engine clock

        Returns:
            Verdict: ALLOW or DENY with the reason code

        Raises:
            StoreError: The grant could not be loaded
        """
        principal = _as_principal(user)

        try:
            key = parse_permission(permission)
        except ValueError:
            return self._deny(principal, permission, DecisionReason.UNKNOWN_PERMISSION)

        if principal.is_super_admin:
            return Verdict.allow(DecisionReason.GLOBAL_SUPER_ADMIN)

        grant = await self.store.get(principal.id)
        if grant is None:
            return self._deny(principal, key, DecisionReason.NO_GRANT)

        gate = self._gate(grant, client_address, now)
        if gate is not None:
            return self._deny(principal, key, gate)

        if key in self._effective(grant):
            logger.debug("Allowed %s for user %s", key.value, principal.id)
            return Verdict.allow(DecisionReason.GRANTED)
        return self._deny(principal, key, DecisionReason.PERMISSION_NOT_GRANTED)

    async def has_permission(
        self,
        user: Principal | uuid.UUID,
        permission: AdminPermission | str,
        client_address: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        verdict = await self.check(user, permission, client_address, now)
        return verdict.allowed

    async def has_any_permission(
        self,
        user: Principal | uuid.UUID,
        permissions: Iterable[AdminPermission | str],
        client_address: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        now = now or self._clock()
        for permission in permissions:
            if await self.has_permission(user, permission, client_address, now):
                return True
        return False

    async def has_all_permissions(
        self,
        user: Principal | uuid.UUID,
        permissions: Iterable[AdminPermission | str],
        client_address: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        now = now or self._clock()
        for permission in permissions:
            if not await self.has_permission(user, permission, client_address, now):
                return False
        return True

    async def require_permission(
        self,
        user: Principal | uuid.UUID,
        permission: AdminPermission | str,
        client_address: str | None = None,
        now: datetime | None = None,
    ) -> Verdict:
        """Return the ALLOW verdict or raise.

        Raises:
            PermissionError: With the permission and deny reason in ``details``
            StoreError: The grant could not be loaded
        """
        verdict = await self.check(user, permission, client_address, now)
        if not verdict.allowed:
            key = permission.value if isinstance(permission, AdminPermission) else permission
            raise PermissionError.for_permission(key, verdict.reason.value)
        return verdict

    async def effective_permissions(
        self,
        user: Principal | uuid.UUID,
        client_address: str | None = None,
        now: datetime | None = None,
    ) -> frozenset[AdminPermission]:
        """Every permission ``check`` would currently allow for ``user``.

        Without a ``client_address`` an IP-restricted grant yields nothing.
        """
        principal = _as_principal(user)
        if principal.is_super_admin:
            return ALL_PERMISSIONS
        grant = await self.store.get(principal.id)
        if grant is None or self._gate(grant, client_address, now) is not None:
            return frozenset()
        return self._effective(grant)

    def _gate(
        self,
        grant: AdminRoleGrant,
        client_address: str | None,
        now: datetime | None,
    ) -> DecisionReason | None:
        if not grant.active:
            return DecisionReason.SUSPENDED
        if grant.is_expired(as_utc(now) or self._clock()):
            return DecisionReason.EXPIRED
        if grant.allowed_ips and not network.matches(client_address, grant.allowed_ips):
            return DecisionReason.IP_RESTRICTED
        return None

    @staticmethod
    def _effective(grant: AdminRoleGrant) -> frozenset[AdminPermission]:
        return effective_permissions(parse_role(grant.role), grant.permissions)

    @staticmethod
    def _deny(
        principal: Principal,
        permission: AdminPermission | str,
        reason: DecisionReason,
    ) -> Verdict:
        key = permission.value if isinstance(permission, AdminPermission) else permission
        logger.info(
            "Denied %s for user %s: %s", key, principal.id, reason.value
        )
        return Verdict.deny(reason)
