from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.errors import StorageError
from src.application.interfaces.repositories.memberships import MembershipRepository
from src.domain.models.membership import Membership, MemberView
from src.domain.value_objects.role import Role
from src.infrastructure.db.orm.membership import MembershipORM
from src.infrastructure.db.orm.user import UserORM
from src.utils.datetime_tz import to_utc


class MembershipsSQLAlchemyRepository(MembershipRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, orm: MembershipORM) -> Membership:
        return Membership(
            id=orm.id,
            user_id=orm.user_id,
            tenant_id=orm.tenant_id,
            role=orm.role,
            is_active=orm.is_active,
            created_at=to_utc(orm.created_at),
            updated_at=to_utc(orm.updated_at),
        )

    async def _get_one(self, stmt, for_update: bool) -> Membership | None:
        if for_update:
            # Reload from the row we now hold, not from the identity map
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        orm = result.scalar_one_or_none()
        return self._to_domain(orm) if orm else None

    async def get_in_tenant(
        self, tenant_id: UUID, membership_id: UUID, *, for_update: bool = False
    ) -> Membership | None:
        stmt = select(MembershipORM).where(
            MembershipORM.id == membership_id, MembershipORM.tenant_id == tenant_id
        )
        return await self._get_one(stmt, for_update)

    async def get_for_user(
        self, tenant_id: UUID, user_id: UUID, *, for_update: bool = False
    ) -> Membership | None:
        stmt = select(MembershipORM).where(
            MembershipORM.user_id == user_id, MembershipORM.tenant_id == tenant_id
        )
        return await self._get_one(stmt, for_update)

    async def add(self, membership: Membership) -> Membership:
        orm = MembershipORM(
            id=membership.id,
            user_id=membership.user_id,
            tenant_id=membership.tenant_id,
            role=membership.role,
            is_active=membership.is_active,
            created_at=membership.created_at,
            updated_at=membership.updated_at,
        )
        self.session.add(orm)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # A concurrent request inserted the same (user, tenant) pair first.
            # Resubmitting takes the reactivate/update path.
            raise StorageError(
                "Membership was created concurrently; retry the request",
                details={"user_id": str(membership.user_id), "tenant_id": str(membership.tenant_id)},
            ) from exc
        return self._to_domain(orm)

    async def _update(self, membership_id: UUID, **values) -> None:
        stmt = update(MembershipORM).where(MembershipORM.id == membership_id).values(**values)
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise StorageError("Membership row disappeared during update")

    async def set_role(self, membership_id: UUID, role: Role, now: datetime) -> None:
        await self._update(membership_id, role=role, updated_at=now)

    async def set_active(self, membership_id: UUID, is_active: bool, now: datetime) -> None:
        await self._update(membership_id, is_active=is_active, updated_at=now)

    async def reactivate(self, membership_id: UUID, role: Role, now: datetime) -> None:
        await self._update(membership_id, role=role, is_active=True, updated_at=now)

    async def count_other_active_admins(self, tenant_id: UUID, exclude_membership_id: UUID) -> int:
        # Lock every active ADMIN row of the tenant, the excluded one included, in a
        # fixed order. Locking only "the others" would let two removals of A and B
        # lock disjoint rows and both see one remaining admin.
        stmt = (
            select(MembershipORM.id)
            .where(
                MembershipORM.tenant_id == tenant_id,
                MembershipORM.role == Role.ADMIN,
                MembershipORM.is_active.is_(True),
            )
            .order_by(MembershipORM.id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return sum(1 for admin_id in result.scalars().all() if admin_id != exclude_membership_id)

    async def list_for_tenant(
        self,
        tenant_id: UUID,
        *,
        role: Role | None = None,
        is_active: bool | None = None,
    ) -> list[MemberView]:
        stmt = (
            select(MembershipORM, UserORM.email, UserORM.full_name)
            .outerjoin(UserORM, UserORM.id == MembershipORM.user_id)
            .where(MembershipORM.tenant_id == tenant_id)
        )
        if role is not None:
            stmt = stmt.where(MembershipORM.role == role)
        if is_active is not None:
            stmt = stmt.where(MembershipORM.is_active.is_(is_active))
        stmt = stmt.order_by(MembershipORM.created_at.asc(), MembershipORM.id.asc())
        result = await self.session.execute(stmt)
        return [
            MemberView(membership=self._to_domain(orm), email=email, full_name=full_name)
            for orm, email, full_name in result.all()
        ]
