from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from src.application.errors import NotFound, OwnerProtected
from src.application.events.models import MembershipRoleChangedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.memberships.guards import LockedMembership, load_locked
from src.domain.models.membership import Membership
from src.domain.value_objects.role import Role
from src.utils.datetime_tz import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UpdateUserRoleInput:
    tenant_id: UUID
    membership_id: UUID
    new_role: Role


async def change_role(
    uow: UnitOfWork,
    actor_id: UUID | None,
    tenant_id: UUID,
    membership_id: UUID,
    new_role: Role,
    now: datetime,
) -> Membership:
    """Apply a guarded role change inside an open unit of work. Does not commit."""
    locked = await load_locked(uow, tenant_id, membership_id)
    if locked is None:
        raise NotFound("Membership not found in this tenant")
    return await apply_role_change(uow, actor_id, locked, new_role, now)


async def apply_role_change(
    uow: UnitOfWork,
    actor_id: UUID | None,
    locked: LockedMembership,
    new_role: Role,
    now: datetime,
) -> Membership:
    membership = locked.membership
    tenant_id = membership.tenant_id
    if not membership.is_active:
        raise NotFound("Membership not found in this tenant")

    if membership.role.is_owner or new_role.is_owner:
        logger.info(
            "Rejected role change %s -> %s on membership %s",
            membership.role.value,
            new_role.value,
            membership.id,
            extra={"tenant_id": str(tenant_id)},
        )
        raise OwnerProtected(
            "OWNER role cannot be changed or assigned",
            details={"membership_id": str(membership.id)},
        )

    if membership.role == new_role:
        return membership

    if not new_role.is_admin:
        locked.ensure_admin_remains("change the role of")

    await uow.memberships.set_role(membership.id, new_role, now)
    uow.add_event(
        MembershipRoleChangedEvent(
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            membership_id=membership.id,
            old_role=membership.role,
            new_role=new_role,
        )
    )
    return membership.with_role(new_role, now)


async def execute(
    uow: UnitOfWork,
    actor_id: UUID | None,
    payload: UpdateUserRoleInput,
    *,
    clock: Clock = utc_now,
) -> Membership:
    async with uow:
        updated = await change_role(
            uow, actor_id, payload.tenant_id, payload.membership_id, payload.new_role, clock()
        )
        await uow.commit()

    logger.info(
        "Membership %s role is now %s",
        updated.id,
        updated.role.value,
        extra={"tenant_id": str(payload.tenant_id)},
    )
    return updated
