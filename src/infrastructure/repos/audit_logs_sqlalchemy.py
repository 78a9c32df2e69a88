from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.interfaces.repositories.audit_logs import AuditLogRepository
from src.domain.models.audit_log import AuditLog
from src.infrastructure.db.orm.audit_log import AuditLogORM
from src.utils.datetime_tz import to_utc


class AuditLogsSQLAlchemyRepository(AuditLogRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _to_domain(self, row: AuditLogORM) -> AuditLog:
        return AuditLog(
            id=row.id,
            tenant_id=row.tenant_id,
            actor_id=row.actor_id,
            action=row.action,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            old_values=row.old_values,
            new_values=row.new_values,
            notes=row.notes,
            ip_address=row.ip_address,
            user_agent=row.user_agent,
            created_at=to_utc(row.created_at),
        )

    async def add(self, entry: AuditLog) -> None:
        self.session.add(
            AuditLogORM(
                id=entry.id,
                tenant_id=entry.tenant_id,
                actor_id=entry.actor_id,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                old_values=entry.old_values,
                new_values=entry.new_values,
                notes=entry.notes,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
                created_at=entry.created_at,
            )
        )
        await self.session.flush()

    def _entity_filter(self, tenant_id: UUID, entity_id: UUID):
        return (AuditLogORM.tenant_id == tenant_id, AuditLogORM.entity_id == entity_id)

    async def list_for_entity(
        self, tenant_id: UUID, entity_id: UUID, *, limit: int | None = None, offset: int = 0
    ) -> list[AuditLog]:
        stmt = (
            select(AuditLogORM)
            .where(*self._entity_filter(tenant_id, entity_id))
            .order_by(AuditLogORM.created_at.asc(), AuditLogORM.id.asc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_domain(row) for row in result.scalars().all()]

    async def count_for_entity(self, tenant_id: UUID, entity_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(AuditLogORM)
            .where(*self._entity_filter(tenant_id, entity_id))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
