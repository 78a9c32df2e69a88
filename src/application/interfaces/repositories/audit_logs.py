from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.domain.models.audit_log import AuditLog


class AuditLogRepository(Protocol):
    async def add(self, entry: AuditLog) -> None: ...

    async def list_for_entity(
        self, tenant_id: UUID, entity_id: UUID, *, limit: int | None = None, offset: int = 0
    ) -> list[AuditLog]: ...

    async def count_for_entity(self, tenant_id: UUID, entity_id: UUID) -> int: ...
