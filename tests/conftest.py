from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///default.db")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

# ruff: noqa: E402
from src.config.settings import Settings
from src.domain.models.membership import Membership
from src.domain.value_objects.role import Role
from src.infrastructure.db.base import Base
from src.infrastructure.db.orm import audit_log, tenant, user  # noqa: F401
from src.infrastructure.db.orm.membership import MembershipORM
from src.infrastructure.db.orm.tenant import TenantORM
from src.infrastructure.db.orm.user import UserORM
from src.infrastructure.db.session import (
    SQLAlchemyUnitOfWork,
    create_engine,
    create_session_factory,
)
from src.interfaces.http.main import create_app

SEEDED_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture()
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    db_path = tmp_path / "test.db"
    return Settings.model_validate(
        {
            "database_url": f"sqlite+aiosqlite:///{db_path}",
            "log_level": "INFO",
            "environment": "test",
            "db_lock_timeout_seconds": 5,
        }
    )


@pytest.fixture()
async def engine(test_settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(
        test_settings.database_url, lock_timeout_seconds=test_settings.db_lock_timeout_seconds
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture()
def make_uow(session_factory):
    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    return factory


async def seed_memberships(
    session_factory, tenant_id: UUID, specs: dict[str, tuple[Role, bool]]
) -> dict[str, Membership]:
    """Provision a tenant with one user + membership per label: label -> (role, is_active)."""
    seeded: dict[str, Membership] = {}
    async with session_factory() as session:
        if await session.get(TenantORM, tenant_id) is None:
            session.add(TenantORM(id=tenant_id, name=f"Tenant {tenant_id.hex[:6]}"))
        for label, (role, is_active) in specs.items():
            user_id = uuid4()
            session.add(
                UserORM(id=user_id, email=f"{label}.{user_id.hex[:8]}@example.com", full_name=label)
            )
            membership = Membership(
                id=uuid4(),
                user_id=user_id,
                tenant_id=tenant_id,
                role=role,
                is_active=is_active,
                created_at=SEEDED_AT,
                updated_at=SEEDED_AT,
            )
            session.add(
                MembershipORM(
                    id=membership.id,
                    user_id=membership.user_id,
                    tenant_id=membership.tenant_id,
                    role=membership.role,
                    is_active=membership.is_active,
                    created_at=membership.created_at,
                    updated_at=membership.updated_at,
                )
            )
            seeded[label] = membership
        await session.commit()
    return seeded


async def fetch_membership(session_factory, membership_id: UUID) -> MembershipORM | None:
    async with session_factory() as session:
        return await session.get(MembershipORM, membership_id)


async def count_memberships(session_factory, tenant_id: UUID, **filters) -> int:
    stmt = select(func.count()).select_from(MembershipORM).where(MembershipORM.tenant_id == tenant_id)
    for column, value in filters.items():
        stmt = stmt.where(getattr(MembershipORM, column) == value)
    async with session_factory() as session:
        result = await session.execute(stmt)
        return result.scalar_one()


@pytest.fixture()
async def seeded_tenant(session_factory, tenant_id: UUID) -> dict[str, Membership]:
    return await seed_memberships(
        session_factory,
        tenant_id,
        {
            "owner": (Role.OWNER, True),
            "admin_a": (Role.ADMIN, True),
            "admin_b": (Role.ADMIN, True),
            "staff": (Role.STAFF, True),
        },
    )


@pytest.fixture()
def app(test_settings: Settings):
    return create_app(settings=test_settings)


@pytest.fixture()
async def client(app) -> AsyncIterator[AsyncClient]:
    engine = app.state.engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    await engine.dispose()
