from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status

from src.application.events.dispatcher import dispatch_events
from src.application.events.models import AuditContext
from src.application.use_cases.memberships import (
    add_user_to_tenant,
    list_membership_audit,
    list_tenant_members,
    remove_user_from_tenant,
    update_user_role,
)
from src.domain.value_objects.role import Role
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.interfaces.http.deps import get_actor_id, get_audit_context, get_uow
from src.interfaces.http.schemas.memberships import (
    AddMemberRequest,
    AuditLogPage,
    AuditLogResponse,
    MemberResponse,
    MembershipResponse,
    RemoveMemberResponse,
    UpdateMemberRoleRequest,
)

router = APIRouter(prefix="/tenants/{tenant_id}/members", tags=["memberships"])
logger = logging.getLogger(__name__)


def _schedule_audit(
    request: Request,
    background_tasks: BackgroundTasks,
    uow: SQLAlchemyUnitOfWork,
    context: AuditContext,
) -> None:
    events = uow.drain_events()
    session_factory = getattr(request.app.state, "session_factory", None)
    if events and session_factory is not None:
        background_tasks.add_task(dispatch_events, session_factory, events, context)


@router.get("", response_model=list[MemberResponse])
async def list_members(
    tenant_id: UUID,
    role: Role | None = Query(None),
    is_active: bool | None = Query(None),
    _: UUID = Depends(get_actor_id),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> list[MemberResponse]:
    views = await list_tenant_members.execute(uow, tenant_id, role=role, is_active=is_active)
    return [MemberResponse.from_view(v) for v in views]


@router.post("", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    tenant_id: UUID,
    payload: AddMemberRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    actor_id: UUID = Depends(get_actor_id),
    audit_context: AuditContext = Depends(get_audit_context),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> MembershipResponse:
    membership = await add_user_to_tenant.execute(
        uow,
        actor_id,
        add_user_to_tenant.AddUserToTenantInput(
            tenant_id=tenant_id, user_id=payload.user_id, role=payload.role
        ),
    )
    _schedule_audit(request, background_tasks, uow, audit_context)
    return MembershipResponse.from_domain(membership)


@router.patch("/{membership_id}", response_model=MembershipResponse)
async def update_member_role(
    tenant_id: UUID,
    membership_id: UUID,
    payload: UpdateMemberRoleRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    actor_id: UUID = Depends(get_actor_id),
    audit_context: AuditContext = Depends(get_audit_context),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> MembershipResponse:
    membership = await update_user_role.execute(
        uow,
        actor_id,
        update_user_role.UpdateUserRoleInput(
            tenant_id=tenant_id, membership_id=membership_id, new_role=payload.role
        ),
    )
    _schedule_audit(request, background_tasks, uow, audit_context)
    return MembershipResponse.from_domain(membership)


@router.delete("/{membership_id}", response_model=RemoveMemberResponse)
async def remove_member(
    tenant_id: UUID,
    membership_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    actor_id: UUID = Depends(get_actor_id),
    audit_context: AuditContext = Depends(get_audit_context),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> RemoveMemberResponse:
    result = await remove_user_from_tenant.execute(
        uow,
        actor_id,
        remove_user_from_tenant.RemoveUserFromTenantInput(
            tenant_id=tenant_id, membership_id=membership_id
        ),
    )
    _schedule_audit(request, background_tasks, uow, audit_context)
    message = "Membership deactivated" if result.changed else "Membership was already inactive"
    return RemoveMemberResponse(
        message=message,
        membership=MembershipResponse.from_domain(result.membership),
        changed=result.changed,
    )


@router.get("/{membership_id}/audit-logs", response_model=AuditLogPage)
async def list_member_audit_logs(
    tenant_id: UUID,
    membership_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _: UUID = Depends(get_actor_id),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> AuditLogPage:
    page = await list_membership_audit.execute(
        uow, tenant_id, membership_id, limit=limit, offset=offset
    )
    return AuditLogPage(
        items=[AuditLogResponse.model_validate(entry) for entry in page.items],
        total=page.total,
        limit=limit,
        offset=offset,
    )
