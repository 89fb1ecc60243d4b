"""Shared test fixtures and configuration."""
import os

# Settings are read from the environment on first access; keep tests off any
# real database configured in a local .env.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from photo_rbac.crud.admin_role_grant import AdminRoleStore
from photo_rbac.database import build_sessionmaker
from photo_rbac.models.base import Base


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db_engine(anyio_backend):
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_sessionmaker(db_engine)


@pytest.fixture
def role_store(session_factory):
    return AdminRoleStore(session_factory)
