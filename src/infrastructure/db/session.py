from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.application.errors import StorageError
from src.application.interfaces.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


def create_engine(
    database_url: str,
    *,
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    echo: bool = False,
) -> AsyncEngine:
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"timeout": lock_timeout_seconds} if is_sqlite else {}
    engine = create_async_engine(database_url, echo=echo, future=True, connect_args=connect_args)
    if is_sqlite:
        _serialize_sqlite_writers(engine)
    return engine


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    # SQLite has no row locks and ignores FOR UPDATE. Taking the write lock at
    # BEGIN makes every transaction see the state left by the previous commit,
    # waiting up to the driver timeout for it.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


class SQLAlchemyUnitOfWork(UnitOfWork):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        *,
        lock_timeout_seconds: float | None = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._lock_timeout_seconds = lock_timeout_seconds
        self.session: AsyncSession | None = None
        self.memberships = None
        self.audit_logs = None
        self.events: list = []
        self._pending_events: list = []

    async def __aenter__(self) -> UnitOfWork:
        self.session = self._session_factory()
        from src.infrastructure.repos.audit_logs_sqlalchemy import AuditLogsSQLAlchemyRepository
        from src.infrastructure.repos.memberships_sqlalchemy import MembershipsSQLAlchemyRepository

        self.memberships = MembershipsSQLAlchemyRepository(self.session)
        self.audit_logs = AuditLogsSQLAlchemyRepository(self.session)
        self._pending_events = []
        try:
            await self._apply_lock_timeout()
        except SQLAlchemyError as exc:
            await self._close()
            raise StorageError("Could not open a database transaction") from exc
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.session:
            return
        try:
            if exc:
                self._pending_events.clear()
                await self.session.rollback()
        finally:
            await self._close()
        if isinstance(exc, SQLAlchemyError):
            logger.warning("Membership transaction rolled back: %s", exc)
            raise StorageError("Storage operation failed; the request may be retried") from exc

    async def _apply_lock_timeout(self) -> None:
        bind = self.session.bind
        if not self._lock_timeout_seconds or bind is None or bind.dialect.name != "postgresql":
            return
        millis = int(self._lock_timeout_seconds * 1000)
        # SET LOCAL only lasts for the transaction this statement begins
        await self.session.execute(text(f"SET LOCAL lock_timeout = '{millis}ms'"))

    async def _close(self) -> None:
        try:
            await self.session.close()
        finally:
            self.session = None
            self.memberships = None
            self.audit_logs = None

    async def commit(self) -> None:
        if not self.session:
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            self._pending_events.clear()
            raise StorageError("Commit failed; the request may be retried") from exc
        self.events.extend(self._pending_events)
        self._pending_events = []

    async def rollback(self) -> None:
        if not self.session:
            return
        self._pending_events.clear()
        await self.session.rollback()

    def add_event(self, event: object) -> None:
        self._pending_events.append(event)

    def drain_events(self) -> list:
        events, self.events = self.events, []
        return events
