from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.domain.models.membership import Membership, MemberView
from src.domain.value_objects.role import Role


class MembershipRepository(Protocol):
    async def get_in_tenant(
        self, tenant_id: UUID, membership_id: UUID, *, for_update: bool = False
    ) -> Membership | None: ...

    async def get_for_user(
        self, tenant_id: UUID, user_id: UUID, *, for_update: bool = False
    ) -> Membership | None: ...

    async def add(self, membership: Membership) -> Membership: ...

    async def set_role(self, membership_id: UUID, role: Role, now: datetime) -> None: ...

    async def set_active(self, membership_id: UUID, is_active: bool, now: datetime) -> None: ...

    async def reactivate(self, membership_id: UUID, role: Role, now: datetime) -> None: ...

    async def count_other_active_admins(
        self, tenant_id: UUID, exclude_membership_id: UUID
    ) -> int: ...

    async def list_for_tenant(
        self,
        tenant_id: UUID,
        *,
        role: Role | None = None,
        is_active: bool | None = None,
    ) -> list[MemberView]: ...
