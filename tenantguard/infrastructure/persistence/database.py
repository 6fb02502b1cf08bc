"""Persistence: async engine, session factory, Base, and the org-bound session.

Engine and session factory are created lazily on first use so import does
not trigger Settings validation.

Every unit of work that touches tenant-scoped tables goes through
bound_session(ctx) / with_bound_connection(ctx, unit):

1. a pooled connection is checked out and a transaction begins;
2. the first statement binds the org with
   set_config('app.current_org', :org_id, true), i.e. SET LOCAL with a bound
   parameter, and the echoed value is compared with the context;
3. the unit runs;
4. the transaction commits. On any exception (including cancellation) the
   connection is invalidated and discarded instead of going back to the pool.

If the unit itself commits or rolls back, the session begins a new transaction
on its next statement; an after_begin listener binds the same org again before
that statement runs, so no statement of a bound unit ever runs unbound.

The binding is transaction-local, so it cannot survive the unit of work on the
success path either. A failed bind raises BindingError before any other
statement runs; binds are never retried.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Session, SessionTransaction

from tenantguard.core.config import get_settings
from tenantguard.domain.exceptions import BindingError, SqlNotConfiguredException
from tenantguard.domain.tenant_context import TenantContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Set by _ensure_engine() on first use; avoids get_settings() at import time.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None

_BIND_SQL = text("SELECT set_config(:name, :value, true)")

# session.info key holding the org id of the bound unit of work.
SESSION_ORG_KEY = "org_id"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


def create_engine_from_settings(**overrides: Any) -> AsyncEngine:
    """Create an AsyncEngine from settings; keyword overrides win (e.g. pool_size=1)."""
    settings = get_settings()
    if not settings.database_url:
        raise SqlNotConfiguredException()
    connect_args: dict[str, Any] = {}
    if settings.db_command_timeout is not None:
        connect_args["command_timeout"] = settings.db_command_timeout
    kwargs: dict[str, Any] = {
        "echo": settings.database_echo,
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size if settings.db_pool_size is not None else 10,
        "max_overflow": (
            settings.db_max_overflow if settings.db_max_overflow is not None else 20
        ),
        "pool_recycle": 3600,
        "connect_args": connect_args,
    }
    kwargs.update(overrides)
    return create_async_engine(settings.database_url, **kwargs)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used for bound units of work."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _ensure_engine() -> async_sessionmaker[AsyncSession]:
    """Create engine and AsyncSessionLocal on first use."""
    global engine, AsyncSessionLocal
    if AsyncSessionLocal is None:
        engine = create_engine_from_settings()
        AsyncSessionLocal = make_session_factory(engine)
    return AsyncSessionLocal


async def dispose_engine() -> None:
    """Dispose the module engine (shutdown)."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


async def set_binding(
    executor: AsyncSession | AsyncConnection, value: str | None
) -> str | None:
    """Write value to the org setting for the current transaction; return the echo.

    Raw write with no validation. bind_org is the only caller on the request
    path; the verification harness uses it to write adversarial values.
    """
    setting = get_settings().org_setting_name
    result = await executor.execute(_BIND_SQL, {"name": setting, "value": value})
    return result.scalar_one()


def _require_context(ctx: object) -> TenantContext:
    if not isinstance(ctx, TenantContext):
        raise TypeError(
            f"a TenantContext is required to open a bound session, got {type(ctx).__name__}"
        )
    return ctx


async def bind_org(session: AsyncSession, ctx: TenantContext) -> None:
    """Bind ctx.org_id to the session's current transaction.

    Must be the first statement of the transaction. Idempotent: binding the
    same org again leaves the same value in place.

    Raises:
        BindingError: If the write fails or the echoed value does not match.
    """
    ctx = _require_context(ctx)
    expected = str(ctx.org_id)
    setting = get_settings().org_setting_name
    try:
        bound = await set_binding(session, expected)
    except SQLAlchemyError as e:
        logger.error(
            "Binding %s failed for org %s: %s", setting, expected, type(e).__name__
        )
        raise BindingError(type(e).__name__, org_id=expected) from e
    if bound != expected:
        logger.error(
            "Binding %s for org %s echoed %r", setting, expected, bound
        )
        raise BindingError("bound value does not match context", org_id=expected)
    session.info[SESSION_ORG_KEY] = ctx.org_id


@event.listens_for(Session, "after_begin")
def rebind_org(
    session: Session, transaction: SessionTransaction, connection: Connection
) -> None:
    """Bind the session's org on every transaction begun after the first one.

    Sessions that never went through bind_org carry no org and are left alone.
    """
    org_id = session.info.get(SESSION_ORG_KEY)
    if org_id is None:
        return
    expected = str(org_id)
    setting = get_settings().org_setting_name
    try:
        bound = connection.execute(
            _BIND_SQL, {"name": setting, "value": expected}
        ).scalar_one()
    except SQLAlchemyError as e:
        logger.error(
            "Rebinding %s failed for org %s: %s", setting, expected, type(e).__name__
        )
        raise BindingError(type(e).__name__, org_id=expected) from e
    if bound != expected:
        logger.error("Rebinding %s for org %s echoed %r", setting, expected, bound)
        raise BindingError("bound value does not match context", org_id=expected)


async def _discard(session: AsyncSession) -> None:
    """Invalidate the session's connection so it is never returned to the pool."""
    try:
        await session.invalidate()
    except Exception:
        logger.exception("Failed to invalidate connection after aborted unit of work")


@asynccontextmanager
async def bound_session(
    ctx: TenantContext,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Yield a session whose transaction is bound to ctx.org_id.

    Commits when the block exits normally. On any exception (including
    asyncio.CancelledError) the connection is invalidated and the exception
    propagates unchanged.

    Usage:
        async with bound_session(ctx) as db:
            repo = CustomerRepository(db, ctx)
            customers = await repo.list()
    """
    ctx = _require_context(ctx)
    factory = session_factory or _ensure_engine()
    session = factory()
    try:
        await session.begin()
        await bind_org(session, ctx)
        yield session
        await session.commit()
    except BaseException:
        await _discard(session)
        raise
    finally:
        await session.close()


async def with_bound_connection(
    ctx: TenantContext,
    unit: Callable[[AsyncSession], Awaitable[T]],
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> T:
    """Run unit(session) inside bound_session(ctx) and return its result."""
    async with bound_session(ctx, session_factory) as session:
        return await unit(session)


@asynccontextmanager
async def admin_connection(bind: AsyncEngine | None = None) -> AsyncIterator[AsyncConnection]:
    """Unbound connection for catalog queries (pg_catalog, information_schema).

    Never use it for tenant-scoped tables: with no binding, every row policy
    matches zero rows.
    """
    if bind is None:
        _ensure_engine()
        bind = engine
    async with bind.connect() as conn:
        yield conn
