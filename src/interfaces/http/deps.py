from __future__ import annotations

from uuid import UUID

from fastapi import Request

from src.application.errors import AuthError
from src.application.events.models import AuditContext
from src.config.settings import Settings, get_settings
from src.infrastructure.db.session import SQLAlchemyUnitOfWork


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_uow(request: Request) -> SQLAlchemyUnitOfWork:
    # Not entered here: each membership operation owns its transaction boundary
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise RuntimeError("Session factory not configured")
    settings = get_app_settings(request)
    return SQLAlchemyUnitOfWork(
        session_factory, lock_timeout_seconds=settings.db_lock_timeout_seconds
    )


def get_actor_id(request: Request) -> UUID:
    settings = get_app_settings(request)
    raw = request.headers.get(settings.actor_header)
    if not raw:
        raise AuthError("Actor identity required")
    try:
        return UUID(raw)
    except ValueError as exc:
        raise AuthError("Actor identity is not a valid id") from exc


def get_audit_context(request: Request) -> AuditContext:
    user_agent = request.headers.get("user-agent")
    return AuditContext(
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent[:500] if user_agent else None,
    )
