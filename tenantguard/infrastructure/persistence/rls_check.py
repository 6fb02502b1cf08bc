"""Shared RLS (row-level security) check for Postgres.

Used by the readiness endpoint, scripts/verify_rls_roles and the isolation
harness. Returns a result object; does not print or exit. Caller decides
whether to fail startup, return 503, or exit with code 1.

The app role must be NOSUPERUSER and NOBYPASSRLS; otherwise every policy is
silently skipped. With check_policies, every registered table must have RLS
enabled and forced with the org_isolation policy, and every table carrying an
org_id column must be registered.

check_binding_setting proves that writing the configured setting is what
current_org_id() reads; the migrations install the function for one setting
name and a different ORG_SETTING_NAME would leave every request bound to
nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlparse
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine
from sqlalchemy.pool import NullPool

from tenantguard.core.config import get_settings
from tenantguard.infrastructure.persistence.row_policies import (
    PolicyStatus,
    discover_org_column_tables,
    fetch_policy_status,
    registered_policies,
)

_ROLE_SQL = text(
    "SELECT rolname, rolsuper, rolbypassrls FROM pg_roles WHERE rolname = :role"
)
_BIND_SQL = text("SELECT set_config(:name, :value, true)")
_CURRENT_ORG_SQL = text("SELECT current_org_id()")


@dataclass
class RLSCheckResult:
    """Result of running RLS checks against Postgres."""

    ok: bool
    message: str
    tables: list[PolicyStatus] = field(default_factory=list)
    unregistered: list[str] = field(default_factory=list)


def _derive_role(database_url: str) -> str | None:
    return urlparse(database_url).username or None


async def check_role(conn: AsyncConnection, app_role: str) -> RLSCheckResult:
    """Fail when app_role is missing, SUPERUSER or BYPASSRLS."""
    row = (await conn.execute(_ROLE_SQL, {"role": app_role})).first()
    if row is None:
        return RLSCheckResult(ok=False, message=f"Role not found: {app_role}")
    if row.rolsuper:
        return RLSCheckResult(
            ok=False,
            message=(
                f"RLS check failed: app role '{app_role}' is SUPERUSER (should not). "
                f"Run: ALTER ROLE {app_role} NOSUPERUSER;"
            ),
        )
    if row.rolbypassrls:
        return RLSCheckResult(
            ok=False,
            message=(
                f"RLS check failed: app role '{app_role}' has BYPASSRLS (should not). "
                f"Run: ALTER ROLE {app_role} NOBYPASSRLS;"
            ),
        )
    return RLSCheckResult(ok=True, message=f"Role {app_role} is subject to RLS.")


async def check_policies(
    conn: AsyncConnection, tables: list[str] | None = None
) -> RLSCheckResult:
    """Fail when any table lacks RLS enabled+forced or the org_isolation policy."""
    registered = [p.table for p in registered_policies()]
    if tables is None:
        tables = registered
    statuses = await fetch_policy_status(conn, tables)
    org_tables = await discover_org_column_tables(conn)
    unregistered = sorted(set(org_tables) - set(registered) - set(tables))

    problems = [f"{s.table}: missing {', '.join(s.missing)}" for s in statuses if not s.ok]
    problems += [f"{t}: has org_id but no registered policy" for t in unregistered]
    if problems:
        return RLSCheckResult(
            ok=False,
            message="RLS check failed: " + "; ".join(problems),
            tables=statuses,
            unregistered=unregistered,
        )
    return RLSCheckResult(
        ok=True,
        message=f"RLS enabled, forced and org_isolation present on {len(statuses)} tables.",
        tables=statuses,
    )


async def check_binding_setting(conn: AsyncConnection, setting: str) -> RLSCheckResult:
    """Fail when writing setting does not change what current_org_id() returns.

    Writes a random org id in a transaction that is rolled back.
    """
    sample = uuid4()
    try:
        await conn.execute(_BIND_SQL, {"name": setting, "value": str(sample)})
        seen = (await conn.execute(_CURRENT_ORG_SQL)).scalar_one()
    except DBAPIError as e:
        return RLSCheckResult(
            ok=False,
            message=f"RLS check failed: current_org_id() unavailable ({type(e.orig).__name__}).",
        )
    finally:
        await conn.rollback()
    if seen is None or UUID(str(seen)) != sample:
        return RLSCheckResult(
            ok=False,
            message=(
                f"RLS check failed: current_org_id() does not read '{setting}'. "
                "The setting name must match the one the migrations installed."
            ),
        )
    return RLSCheckResult(ok=True, message=f"current_org_id() reads '{setting}'.")


async def run_rls_check(
    database_url: str,
    app_role: str | None = None,
    verify_policies: bool = True,
    tables: list[str] | None = None,
) -> RLSCheckResult:
    """Run RLS role and optional policy checks.

    Args:
        database_url: Postgres URL (postgresql+asyncpg://).
        app_role: Role used by the application; must be NOSUPERUSER and
            NOBYPASSRLS. If None, derived from database_url username.
        verify_policies: If True, verify per-table RLS flags and policies and
            that the configured org setting drives current_org_id().
        tables: Tables to verify; defaults to the registered policy tables.

    Returns:
        RLSCheckResult with ok=True if all checks pass, ok=False and message otherwise.
    """
    if not app_role:
        app_role = _derive_role(database_url)
        if not app_role:
            return RLSCheckResult(
                ok=False,
                message="App role not set and could not derive from DATABASE_URL (no username).",
            )

    engine = create_async_engine(database_url, poolclass=NullPool)
    try:
        async with engine.connect() as conn:
            result = await check_role(conn, app_role)
            if not result.ok or not verify_policies:
                return result
            result = await check_policies(conn, tables)
            if not result.ok:
                return result
            binding = await check_binding_setting(conn, get_settings().org_setting_name)
            return result if binding.ok else binding
    except (SQLAlchemyError, OSError) as e:
        return RLSCheckResult(ok=False, message=f"Failed to connect: {e}")
    finally:
        await engine.dispose()
