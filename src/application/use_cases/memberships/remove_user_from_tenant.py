from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from src.application.errors import NotFound, OwnerProtected
from src.application.events.models import MembershipRemovedEvent
from src.application.interfaces.unit_of_work import UnitOfWork
from src.application.use_cases.memberships.guards import load_locked
from src.domain.models.membership import Membership
from src.utils.datetime_tz import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RemoveUserFromTenantInput:
    tenant_id: UUID
    membership_id: UUID


@dataclass(slots=True)
class RemoveUserFromTenantResult:
    membership: Membership
    # False when the membership was already inactive and nothing was written
    changed: bool


async def execute(
    uow: UnitOfWork,
    actor_id: UUID | None,
    payload: RemoveUserFromTenantInput,
    *,
    clock: Clock = utc_now,
) -> RemoveUserFromTenantResult:
    async with uow:
        locked = await load_locked(uow, payload.tenant_id, payload.membership_id)
        if locked is None:
            raise NotFound("Membership not found in this tenant")
        membership = locked.membership

        if not membership.is_active:
            return RemoveUserFromTenantResult(membership=membership, changed=False)

        if membership.role.is_owner:
            logger.info(
                "Rejected removal of OWNER membership %s",
                membership.id,
                extra={"tenant_id": str(payload.tenant_id)},
            )
            raise OwnerProtected(
                "Cannot remove OWNER from tenant",
                details={"membership_id": str(membership.id)},
            )

        locked.ensure_admin_remains("remove")

        now = clock()
        await uow.memberships.set_active(membership.id, False, now)
        uow.add_event(
            MembershipRemovedEvent(
                tenant_id=payload.tenant_id,
                actor_user_id=actor_id,
                membership_id=membership.id,
                role=membership.role,
            )
        )
        await uow.commit()

    logger.info(
        "Membership %s deactivated",
        membership.id,
        extra={"tenant_id": str(payload.tenant_id)},
    )
    return RemoveUserFromTenantResult(membership=membership.deactivated(now), changed=True)
