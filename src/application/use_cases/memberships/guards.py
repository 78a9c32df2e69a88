from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from src.application.errors import LastAdminProtected
from src.application.interfaces.unit_of_work import UnitOfWork
from src.domain.models.membership import Membership

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class LockedMembership:
    """A membership re-read while holding the locks needed to change it.

    ``other_active_admins`` is set only when the membership is an active ADMIN;
    in that case every active ADMIN row of the tenant stays locked until the
    unit of work ends.
    """

    membership: Membership
    other_active_admins: int | None = None

    @property
    def is_active_admin(self) -> bool:
        return self.membership.is_active and self.membership.role.is_admin

    def ensure_admin_remains(self, action: str) -> None:
        if not self.is_active_admin or (self.other_active_admins or 0) >= 1:
            return
        logger.info(
            "Rejected %s of last ADMIN membership %s",
            action,
            self.membership.id,
            extra={"tenant_id": str(self.membership.tenant_id)},
        )
        raise LastAdminProtected(
            f"Cannot {action} the last ADMIN of the tenant - minimum 1 ADMIN required",
            details={"membership_id": str(self.membership.id)},
        )


async def load_locked(
    uow: UnitOfWork, tenant_id: UUID, membership_id: UUID
) -> LockedMembership | None:
    candidate = await uow.memberships.get_in_tenant(tenant_id, membership_id)
    if candidate is None:
        return None

    others: int | None = None
    if candidate.is_active and candidate.role.is_admin:
        # Admin set first, then the row: the same order every guarded operation uses
        others = await uow.memberships.count_other_active_admins(tenant_id, membership_id)

    current = await uow.memberships.get_in_tenant(tenant_id, membership_id, for_update=True)
    if current is None:
        return None
    if current.is_active and current.role.is_admin and others is None:
        # Promoted to ADMIN between the first read and the row lock
        others = await uow.memberships.count_other_active_admins(tenant_id, membership_id)
    return LockedMembership(membership=current, other_active_admins=others)
