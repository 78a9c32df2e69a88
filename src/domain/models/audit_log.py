from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

MEMBERSHIP_ENTITY = "TENANT_MEMBERSHIP"


@dataclass(slots=True, frozen=True)
class AuditLog:
    tenant_id: UUID
    action: str
    entity_id: UUID
    actor_id: UUID | None = None
    entity_type: str = MEMBERSHIP_ENTITY
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    notes: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
