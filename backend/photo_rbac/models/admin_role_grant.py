import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    String,
    TypeDecorator,
    Uuid,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps (SQLite reads them back that way) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always reads back in UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class AdminRoleGrant(Base):
    __tablename__ = "admin_role_grants"
    __table_args__ = (
        CheckConstraint(
            "role IN ('moderator', 'admin', 'super_admin')",
            name="ck_admin_role_grants_role",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), unique=True, nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    # Flat key -> bool map over the whole permission catalog
    permissions: Mapped[dict[str, bool]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    granted_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    allowed_ips: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )

    @property
    def is_ip_restricted(self) -> bool:
        return bool(self.allowed_ips)

    def is_expired(self, now: datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and as_utc(now) > expires_at

    def status_at(self, now: datetime) -> str:
        """Display status: ``suspended``, ``expired`` or ``active``."""
        if not self.active:
            return "suspended"
        if self.is_expired(now):
            return "expired"
        return "active"

    def __repr__(self) -> str:
        return f"<AdminRoleGrant user_id={self.user_id} role={self.role} active={self.active}>"
