from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from uuid import UUID, uuid4

from src.domain.value_objects.role import Role


@dataclass(slots=True, frozen=True)
class Membership:
    id: UUID
    user_id: UUID
    tenant_id: UUID
    role: Role
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, *, user_id: UUID, tenant_id: UUID, role: Role, now: datetime) -> Membership:
        return cls(
            id=uuid4(),
            user_id=user_id,
            tenant_id=tenant_id,
            role=role,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    def with_role(self, role: Role, now: datetime) -> Membership:
        return replace(self, role=role, updated_at=now)

    def deactivated(self, now: datetime) -> Membership:
        return replace(self, is_active=False, updated_at=now)

    def reactivated(self, role: Role, now: datetime) -> Membership:
        return replace(self, role=role, is_active=True, updated_at=now)


@dataclass(slots=True, frozen=True)
class MemberView:
    """Membership joined with the user's display fields, for listings."""

    membership: Membership
    email: str | None = None
    full_name: str | None = None
