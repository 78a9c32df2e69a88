from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from src.application.events.models import (
    AuditContext,
    MembershipAddedEvent,
    MembershipReactivatedEvent,
    MembershipRemovedEvent,
    MembershipRoleChangedEvent,
)
from src.domain.models.audit_log import AuditLog
from src.infrastructure.db.session import SQLAlchemyUnitOfWork

logger = logging.getLogger(__name__)


def build_audit_log(event: object) -> AuditLog | None:
    if isinstance(event, MembershipAddedEvent):
        return AuditLog(
            tenant_id=event.tenant_id,
            actor_id=event.actor_user_id,
            action="USER_ADDED_TO_TENANT",
            entity_id=event.membership_id,
            new_values={"role": event.role.value, "is_active": True},
            notes=f"User added to tenant with role {event.role.value}",
        )
    if isinstance(event, MembershipReactivatedEvent):
        return AuditLog(
            tenant_id=event.tenant_id,
            actor_id=event.actor_user_id,
            action="USER_REACTIVATED",
            entity_id=event.membership_id,
            old_values={"role": event.old_role.value, "is_active": False},
            new_values={"role": event.new_role.value, "is_active": True},
            notes=(
                "Deactivated user reactivated with role changed from "
                f"{event.old_role.value} to {event.new_role.value}"
            ),
        )
    if isinstance(event, MembershipRoleChangedEvent):
        return AuditLog(
            tenant_id=event.tenant_id,
            actor_id=event.actor_user_id,
            action="USER_ROLE_CHANGED",
            entity_id=event.membership_id,
            old_values={"role": event.old_role.value},
            new_values={"role": event.new_role.value},
            notes=f"Role changed from {event.old_role.value} to {event.new_role.value}",
        )
    if isinstance(event, MembershipRemovedEvent):
        return AuditLog(
            tenant_id=event.tenant_id,
            actor_id=event.actor_user_id,
            action="USER_REMOVED_FROM_TENANT",
            entity_id=event.membership_id,
            old_values={"role": event.role.value, "is_active": True},
            new_values={"is_active": False},
            notes=f"User with role {event.role.value} removed from tenant",
        )
    return None


async def dispatch_events(
    session_factory, events: Iterable[object], context: AuditContext | None = None
) -> None:
    """
    Write audit entries for committed membership changes.
    Runs post-commit; a failure here is logged and never undoes the change itself.
    """
    events = list(events)
    if not events:
        return

    for event in events:
        entry = build_audit_log(event)
        if entry is None:
            logger.debug("No audit mapping for event %s", type(event).__name__)
            continue
        if context is not None:
            entry = replace(entry, ip_address=context.ip_address, user_agent=context.user_agent)
        try:
            uow = SQLAlchemyUnitOfWork(session_factory)
            async with uow:
                await uow.audit_logs.add(entry)
                await uow.commit()
        except Exception as e:
            logger.error(
                "Error writing audit log for %s: %s", type(event).__name__, e, exc_info=True
            )
