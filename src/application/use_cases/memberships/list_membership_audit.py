from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from src.application.errors import NotFound
from src.application.interfaces.unit_of_work import UnitOfWork
from src.domain.models.audit_log import AuditLog


@dataclass(slots=True)
class MembershipAuditPage:
    items: list[AuditLog]
    total: int


async def execute(
    uow: UnitOfWork,
    tenant_id: UUID,
    membership_id: UUID,
    *,
    limit: int = 20,
    offset: int = 0,
) -> MembershipAuditPage:
    async with uow:
        if await uow.memberships.get_in_tenant(tenant_id, membership_id) is None:
            raise NotFound("Membership not found in this tenant")
        items = await uow.audit_logs.list_for_entity(
            tenant_id, membership_id, limit=limit, offset=offset
        )
        total = await uow.audit_logs.count_for_entity(tenant_id, membership_id)
    return MembershipAuditPage(items=items, total=total)
