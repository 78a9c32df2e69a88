from __future__ import annotations

from typing import Protocol

from src.application.interfaces.repositories.audit_logs import AuditLogRepository
from src.application.interfaces.repositories.memberships import MembershipRepository


class UnitOfWork(Protocol):
    memberships: MembershipRepository
    audit_logs: AuditLogRepository
    # Domain events collected during the transaction
    events: list

    async def __aenter__(self) -> UnitOfWork: ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    # Record a domain event during the transaction
    def add_event(self, event: object) -> None: ...

    # Drain collected events (used for post-commit dispatch)
    def drain_events(self) -> list: ...
