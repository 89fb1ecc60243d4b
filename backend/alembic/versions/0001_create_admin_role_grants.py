"""Create admin_role_grants table

Revision ID: 0001
Revises:
Create Date: 2026-10-16 09:00:00.000000

One row per user. ``permissions`` is the full key -> bool map and
``allowed_ips`` the ordered allow-list, both stored as JSON.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str | None = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema changes."""
    op.create_table(
        "admin_role_grants",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("granted_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allowed_ips", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "role IN ('moderator', 'admin', 'super_admin')",
            name="ck_admin_role_grants_role",
        ),
    )
    op.create_index(
        "ix_admin_role_grants_user_id",
        "admin_role_grants",
        ["user_id"],
        unique=True,
    )


def downgrade() -> None:
    """Revert schema changes."""
    op.drop_index("ix_admin_role_grants_user_id", table_name="admin_role_grants")
    op.drop_table("admin_role_grants")
