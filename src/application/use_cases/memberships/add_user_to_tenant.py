from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from src.application.errors import InvalidRoleAssignment, OwnerProtected
from src.application.events.models import MembershipAddedEvent, MembershipReactivatedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.memberships.guards import load_locked
from src.application.use_cases.memberships.update_user_role import apply_role_change
from src.domain.models.membership import Membership
from src.domain.value_objects.role import Role
from src.utils.datetime_tz import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AddUserToTenantInput:
    tenant_id: UUID
    user_id: UUID
    role: Role


async def _insert(
    uow: UnitOfWork, actor_id: UUID | None, payload: AddUserToTenantInput, now: datetime
) -> Membership:
    membership = await uow.memberships.add(
        Membership.create(
            user_id=payload.user_id,
            tenant_id=payload.tenant_id,
            role=payload.role,
            now=now,
        )
    )
    uow.add_event(
        MembershipAddedEvent(
            tenant_id=payload.tenant_id,
            actor_user_id=actor_id,
            membership_id=membership.id,
            user_id=membership.user_id,
            role=membership.role,
        )
    )
    return membership


async def _reactivate(
    uow: UnitOfWork, actor_id: UUID | None, existing: Membership, role: Role, now: datetime
) -> Membership:
    if existing.role.is_owner:
        raise OwnerProtected(
            "OWNER membership cannot be reassigned",
            details={"membership_id": str(existing.id)},
        )

    await uow.memberships.reactivate(existing.id, role, now)
    uow.add_event(
        MembershipReactivatedEvent(
            tenant_id=existing.tenant_id,
            actor_user_id=actor_id,
            membership_id=existing.id,
            user_id=existing.user_id,
            old_role=existing.role,
            new_role=role,
        )
    )
    return existing.reactivated(role, now)


async def execute(
    uow: UnitOfWork,
    actor_id: UUID | None,
    payload: AddUserToTenantInput,
    *,
    clock: Clock = utc_now,
) -> Membership:
    if payload.role.is_owner:
        raise InvalidRoleAssignment(
            "Cannot assign OWNER role when adding a user to a tenant",
            details={"role": payload.role.value},
        )

    async with uow:
        now = clock()
        existing = await uow.memberships.get_for_user(payload.tenant_id, payload.user_id)

        if existing is None:
            membership = await _insert(uow, actor_id, payload, now)
        else:
            if existing.role.is_admin or payload.role.is_admin:
                # Admin set before the row, the order every guarded operation uses
                await uow.memberships.count_other_active_admins(payload.tenant_id, existing.id)
            # The unlocked read may be stale; decide on the locked row only
            locked = await load_locked(uow, payload.tenant_id, existing.id)
            if locked is None:
                membership = await _insert(uow, actor_id, payload, now)
            elif not locked.membership.is_active:
                membership = await _reactivate(uow, actor_id, locked.membership, payload.role, now)
            else:
                membership = await apply_role_change(uow, actor_id, locked, payload.role, now)

        await uow.commit()

    logger.info(
        "User %s is an active %s member (membership %s)",
        membership.user_id,
        membership.role.value,
        membership.id,
        extra={"tenant_id": str(payload.tenant_id)},
    )
    return membership
