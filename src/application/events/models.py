from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from src.domain.value_objects.role import Role


@dataclass(frozen=True)
class MembershipAddedEvent:
    tenant_id: UUID
    actor_user_id: UUID | None
    membership_id: UUID
    user_id: UUID
    role: Role


@dataclass(frozen=True)
class MembershipReactivatedEvent:
    tenant_id: UUID
    actor_user_id: UUID | None
    membership_id: UUID
    user_id: UUID
    old_role: Role
    new_role: Role


@dataclass(frozen=True)
class MembershipRoleChangedEvent:
    tenant_id: UUID
    actor_user_id: UUID | None
    membership_id: UUID
    old_role: Role
    new_role: Role


@dataclass(frozen=True)
class MembershipRemovedEvent:
    tenant_id: UUID
    actor_user_id: UUID | None
    membership_id: UUID
    role: Role


@dataclass(frozen=True)
class AuditContext:
    """Request metadata stored alongside each audit entry."""

    ip_address: str | None = None
    user_agent: str | None = None
