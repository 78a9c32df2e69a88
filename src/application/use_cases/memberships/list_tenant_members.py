from __future__ import annotations

from uuid import UUID

from src.application.interfaces.unit_of_work import UnitOfWork
from src.domain.models.membership import MemberView
from src.domain.value_objects.role import Role


async def execute(
    uow: UnitOfWork,
    tenant_id: UUID,
    *,
    role: Role | None = None,
    is_active: bool | None = None,
) -> list[MemberView]:
    # Plain read; may trail concurrent guarded writes
    async with uow:
        return await uow.memberships.list_for_tenant(tenant_id, role=role, is_active=is_active)
