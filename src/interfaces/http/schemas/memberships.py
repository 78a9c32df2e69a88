from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.domain.models.membership import Membership, MemberView
from src.domain.value_objects.role import Role


class AddMemberRequest(BaseModel):
    user_id: UUID
    role: Role = Field(default=Role.STAFF, description="OWNER is rejected")


class UpdateMemberRoleRequest(BaseModel):
    role: Role


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    user_id: UUID
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, membership: Membership) -> MembershipResponse:
        return cls.model_validate(membership)


class MemberResponse(MembershipResponse):
    email: str | None = None
    full_name: str | None = None

    @classmethod
    def from_view(cls, view: MemberView) -> MemberResponse:
        m = view.membership
        return cls(
            id=m.id,
            tenant_id=m.tenant_id,
            user_id=m.user_id,
            role=m.role,
            is_active=m.is_active,
            created_at=m.created_at,
            updated_at=m.updated_at,
            email=view.email,
            full_name=view.full_name,
        )


class RemoveMemberResponse(BaseModel):
    message: str
    membership: MembershipResponse
    changed: bool


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action: str
    entity_type: str
    entity_id: UUID
    actor_id: UUID | None = None
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    notes: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class AuditLogPage(BaseModel):
    items: list[AuditLogResponse]
    total: int
    limit: int
    offset: int
