"""Isolation verification harness.

Runs against a live schema, outside the request path, and proves that the two
isolation layers hold independently of each other:

- a legitimate org binding sees exactly its own rows, and the policy-only
  count matches the explicitly filtered count;
- a random (non-existent) org sees nothing;
- adversarial bindings (unset, NULL, empty, wildcards, malformed, nil UUID,
  SQL-injection payloads) see nothing or have the binding write rejected;
- every table has RLS enabled and forced with the org_isolation policy, and
  the configured binding setting is the one current_org_id() reads;
- the binding echo matches what was written and current_org_id() is NULL for
  every adversarial value;
- rebinding is idempotent, an explicit filter for another org yields nothing,
  ORG-B reusing the connection ORG-A released sees none of ORG-A's rows, and a
  connection whose unit failed is never handed out again.

Every check runs in its own transaction and is rolled back (or committed
read-only through bound_session). Each table is counted in its own savepoint:
a failing statement is a FAIL for that table alone and never hides the counts
of the others. A check that cannot run at all is a FAIL, not an exception.
Findings are collected into an IsolationReport; nothing is printed here.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy import column, func, select, table as sa_table, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, create_async_engine

from tenantguard.core.config import get_settings
from tenantguard.core.org_validation import NIL_ORG_ID
from tenantguard.domain.exceptions import (
    BindingError,
    IsolationViolation,
    PolicyGapError,
    TenantGuardException,
)
from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.database import (
    admin_connection,
    bound_session,
    make_session_factory,
    set_binding,
)
from tenantguard.infrastructure.persistence.row_policies import (
    ORG_TABLE,
    RowPolicy,
    registered_policies,
)
from tenantguard.infrastructure.persistence.rls_check import (
    check_binding_setting,
    check_policies as check_row_policies,
)
from tenantguard.verification.report import ALL_TABLES, IsolationReport

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ECHO_SQL = text("SELECT current_org_binding() AS binding, current_org_id() AS org_id")
_BACKEND_PID_SQL = text("SELECT pg_backend_pid()")

# Values that an unset or NULL binding may echo back.
_EMPTY_ECHOES = (None, "")


@dataclass(frozen=True)
class AdversarialBinding:
    """A session state that must match no rows. value None with unset=True writes nothing."""

    label: str
    value: str | None
    unset: bool = False

    @property
    def expected_echoes(self) -> tuple[str | None, ...]:
        if self.unset or self.value is None:
            return _EMPTY_ECHOES
        return (self.value,)


def adversarial_bindings(known_org: UUID | None = None) -> list[AdversarialBinding]:
    """Adversarial session states, including SQL-injection payloads.

    known_org is embedded in the SET payload so a successful injection would
    bind a real organization.
    """
    target = str(known_org or uuid4())
    return [
        AdversarialBinding("unset", None, unset=True),
        AdversarialBinding("null", None),
        AdversarialBinding("empty", ""),
        AdversarialBinding("percent", "%"),
        AdversarialBinding("star", "*"),
        AdversarialBinding("malformed", "not-a-uuid"),
        AdversarialBinding("nil-uuid", str(NIL_ORG_ID)),
        AdversarialBinding("padded-uuid", f" {target} "),
        AdversarialBinding("inject-drop", "'; DROP TABLE customers; --"),
        AdversarialBinding("inject-or", "' OR '1'='1"),
        AdversarialBinding("inject-select", "'; SELECT * FROM users; --"),
        AdversarialBinding("inject-union", "' UNION SELECT id FROM orgs --"),
        AdversarialBinding("inject-set", f"'; SET app.current_org = '{target}'; --"),
    ]


def _policy_for(name: str) -> RowPolicy:
    return RowPolicy(name, column="id") if name == ORG_TABLE else RowPolicy(name)


class IsolationHarness:
    """Adversarial isolation checks over a set of tenant-scoped tables.

    Args:
        engine: Engine connected as the application role (must be subject to RLS).
        tables: Tables to verify; defaults to every registered policy table.
        legitimate_org_ids: Organizations with fixture data. The first two are
            used as ORG-A and ORG-B for the cross-org checks.
        require_populated: Fail a table whose legitimate binding sees no rows.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        tables: Sequence[str] | None = None,
        legitimate_org_ids: Sequence[UUID] = (),
        require_populated: bool = True,
    ) -> None:
        if not legitimate_org_ids:
            raise ValueError("at least one legitimate org id is required")
        self.engine = engine
        self.policies = (
            [_policy_for(t) for t in tables] if tables else registered_policies()
        )
        self.legitimate_org_ids = list(legitimate_org_ids)
        self.require_populated = require_populated
        self.user_id = uuid4()
        self._spare_org = uuid4()
        self.session_factory = make_session_factory(engine)

    @property
    def tables(self) -> list[str]:
        return [p.table for p in self.policies]

    @property
    def org_a(self) -> UUID:
        return self.legitimate_org_ids[0]

    @property
    def org_b(self) -> UUID:
        """Second legitimate org, or a random never-created one."""
        if len(self.legitimate_org_ids) > 1:
            return self.legitimate_org_ids[1]
        return self._spare_org

    def context(self, org_id: UUID) -> TenantContext:
        return TenantContext(org_id=org_id, user_id=self.user_id)

    async def run(self) -> IsolationReport:
        """Run every check and return the collected report.

        A check that cannot complete is recorded as a failure and the run goes
        on with the next one.
        """
        report = IsolationReport()
        await self._contained(report, "policy", self.check_policies(report))
        for org_id in self.legitimate_org_ids:
            await self._contained(
                report, f"legitimate {org_id}", self.check_legitimate(report, org_id)
            )
        await self._contained(report, "nonexistent org", self.check_nonexistent_org(report))
        await self._contained(report, "adversarial", self.check_adversarial(report))
        await self._contained(report, "idempotent rebind", self.check_idempotent_rebind(report))
        await self._contained(
            report, "layer independence", self.check_layer_independence(report)
        )
        await self._contained(report, "connection reuse", self.check_connection_reuse(report))
        logger.info(
            "Isolation run finished: %d checks, %d failed, %d violations",
            len(report.results),
            len(report.failures),
            len(report.violations),
        )
        return report

    # Statements

    @staticmethod
    def _count_stmt(policy: RowPolicy, org_filter: UUID | None = None, exclude: UUID | None = None):
        t = sa_table(policy.table, column(policy.column))
        stmt = select(func.count()).select_from(t)
        if org_filter is not None:
            stmt = stmt.where(t.c[policy.column] == org_filter)
        if exclude is not None:
            stmt = stmt.where(t.c[policy.column] != exclude)
        return stmt

    async def _count(
        self,
        executor: AsyncSession | AsyncConnection,
        policy: RowPolicy,
        org_filter: UUID | None = None,
        exclude: UUID | None = None,
    ) -> int:
        result = await executor.execute(self._count_stmt(policy, org_filter, exclude))
        return int(result.scalar_one())

    async def _echo(self, executor: AsyncSession | AsyncConnection):
        return (await executor.execute(_ECHO_SQL)).one()

    async def _backend_pid(self, executor: AsyncSession | AsyncConnection) -> int:
        return int((await executor.execute(_BACKEND_PID_SQL)).scalar_one())

    async def _ids(self, db: AsyncSession, policy: RowPolicy) -> set[UUID]:
        t = sa_table(policy.table, column("id"))
        result = await db.execute(select(t.c.id))
        return set(result.scalars().all())

    # Outcomes

    async def _guarded(
        self,
        report: IsolationReport,
        executor: AsyncSession | AsyncConnection,
        table: str,
        check: str,
        work: Callable[[], Awaitable[T]],
    ) -> T | None:
        """Await work() inside a savepoint.

        A failed statement is recorded as a FAIL for table only and None is
        returned; the surrounding transaction stays usable for the next table.
        """
        try:
            async with executor.begin_nested():
                return await work()
        except DBAPIError as e:
            self._failed(report, table, check, e)
            return None

    async def _contained(
        self, report: IsolationReport, check: str, pending: Awaitable[None]
    ) -> None:
        try:
            await pending
        except (BindingError, DBAPIError) as e:
            self._failed(report, ALL_TABLES, check, e)

    def _failed(
        self, report: IsolationReport, table: str, check: str, exc: Exception
    ) -> None:
        if isinstance(exc, TenantGuardException):
            detail, error = exc.message, exc
        else:
            detail, error = f"statement failed: {_describe(exc)}", None
        logger.error("Check %r on %s failed: %s", check, table, detail)
        report.add(table, check, False, detail, error)

    def _violation(
        self, report: IsolationReport, table: str, check: str, binding: str, rows: int
    ) -> None:
        error = IsolationViolation(table, binding, rows)
        logger.critical(error.message)
        report.add(table, check, False, error.message, error)

    def _zero_rows(
        self, report: IsolationReport, table: str, check: str, binding: str, rows: int
    ) -> None:
        if rows:
            self._violation(report, table, check, binding, rows)
        else:
            report.add(table, check, True, "0 rows")

    # Checks

    async def check_policies(self, report: IsolationReport) -> None:
        """RLS enabled + forced + org_isolation on each table; no unregistered org_id tables."""
        async with admin_connection(self.engine) as conn:
            result = await check_row_policies(conn, self.tables)
            setting = await check_binding_setting(conn, get_settings().org_setting_name)
        for status in result.tables:
            if status.ok:
                report.add(status.table, "policy", True, "enabled, forced, org_isolation")
                continue
            error = PolicyGapError(status.table, status.missing)
            logger.error(error.message)
            report.add(status.table, "policy", False, error.message, error)
        for name in result.unregistered:
            error = PolicyGapError(name, ["registered policy"])
            logger.error(error.message)
            report.add(name, "policy", False, error.message, error)
        report.add(ALL_TABLES, "binding setting", setting.ok, setting.message)

    async def check_legitimate(self, report: IsolationReport, org_id: UUID) -> None:
        """Own rows visible, policy count == filtered count, no foreign rows, echo matches."""
        check = f"legitimate {org_id}"

        async def counts(db: AsyncSession, policy: RowPolicy) -> tuple[int, int, int]:
            return (
                await self._count(db, policy),
                await self._count(db, policy, org_filter=org_id),
                await self._count(db, policy, exclude=org_id),
            )

        async with bound_session(self.context(org_id), self.session_factory) as db:
            echo = await self._guarded(report, db, ALL_TABLES, f"echo {org_id}", lambda: self._echo(db))
            if echo is not None:
                report.add(
                    ALL_TABLES,
                    f"echo {org_id}",
                    echo.binding == str(org_id) and echo.org_id == org_id,
                    f"binding={echo.binding!r} current_org_id={echo.org_id}",
                )
            for policy in self.policies:
                seen = await self._guarded(report, db, policy.table, check, lambda: counts(db, policy))
                if seen is None:
                    continue
                visible, filtered, foreign = seen
                detail = f"policy={visible} filtered={filtered} foreign={foreign}"
                if foreign:
                    self._violation(report, policy.table, check, str(org_id), foreign)
                elif visible != filtered:
                    report.add(policy.table, check, False, detail)
                elif self.require_populated and visible == 0:
                    report.add(policy.table, check, False, detail + " (expected rows)")
                else:
                    report.add(policy.table, check, True, detail)

    async def check_nonexistent_org(self, report: IsolationReport) -> None:
        """A random, never-created org id sees nothing."""
        ghost = uuid4()
        async with bound_session(self.context(ghost), self.session_factory) as db:
            for policy in self.policies:
                rows = await self._guarded(
                    report, db, policy.table, "nonexistent org", lambda: self._count(db, policy)
                )
                if rows is not None:
                    self._zero_rows(report, policy.table, "nonexistent org", str(ghost), rows)

    async def check_adversarial(self, report: IsolationReport) -> None:
        """Every adversarial binding sees 0 rows (or its write is rejected) and current_org_id() is NULL.

        Only a rejected binding write passes without counting. A count that
        fails under an accepted binding is a FAIL for that table alone.
        """
        for binding in adversarial_bindings(self.org_a):
            check = f"adversarial {binding.label}"
            # Leaving connect() without commit rolls the check back.
            async with self.engine.connect() as conn:
                if not binding.unset:
                    try:
                        await set_binding(conn, binding.value)
                    except DBAPIError as e:
                        logger.info("Binding %r rejected: %s", binding.value, _describe(e))
                        for policy in self.policies:
                            report.add(policy.table, check, True, "binding rejected")
                        continue

                echo_check = f"echo {binding.label}"
                echo = await self._guarded(report, conn, ALL_TABLES, echo_check, lambda: self._echo(conn))
                if echo is not None:
                    report.add(
                        ALL_TABLES,
                        echo_check,
                        echo.binding in binding.expected_echoes and echo.org_id is None,
                        f"binding={echo.binding!r} current_org_id={echo.org_id}",
                    )
                for policy in self.policies:
                    rows = await self._guarded(
                        report, conn, policy.table, check, lambda: self._count(conn, policy)
                    )
                    if rows is not None:
                        self._zero_rows(report, policy.table, check, repr(binding.value), rows)

    async def check_idempotent_rebind(self, report: IsolationReport) -> None:
        """Binding the same org twice in one unit leaves the visible row set unchanged."""
        org_id = self.org_a

        async def rebind(db: AsyncSession, policy: RowPolicy) -> tuple[set[UUID], set[UUID]]:
            before = await self._ids(db, policy)
            await set_binding(db, str(org_id))
            return before, await self._ids(db, policy)

        async with bound_session(self.context(org_id), self.session_factory) as db:
            for policy in self.policies:
                ids = await self._guarded(
                    report, db, policy.table, "idempotent rebind", lambda: rebind(db, policy)
                )
                if ids is None:
                    continue
                before, after = ids
                report.add(
                    policy.table,
                    "idempotent rebind",
                    before == after,
                    f"{len(before)} rows before, {len(after)} after",
                )

    async def check_layer_independence(self, report: IsolationReport) -> None:
        """Bound to ORG-A, an explicit filter for another org returns nothing."""
        async with bound_session(self.context(self.org_a), self.session_factory) as db:
            for policy in self.policies:
                rows = await self._guarded(
                    report,
                    db,
                    policy.table,
                    "layer independence",
                    lambda: self._count(db, policy, org_filter=self.org_b),
                )
                if rows is not None:
                    self._zero_rows(report, policy.table, "layer independence", str(self.org_a), rows)

    async def check_connection_reuse(self, report: IsolationReport) -> None:
        """On a single-connection pool: B reuses the connection A released and sees none of A.

        Then a failed unit of A must not hand its connection on: the next
        checkout is a new backend and carries no binding.
        """
        org_a, org_b = self.org_a, self.org_b
        single = create_async_engine(self.engine.url, pool_size=1, max_overflow=0)
        factory = make_session_factory(single)
        try:
            async with bound_session(self.context(org_a), factory) as db:
                pid_a = await self._backend_pid(db)

            async with bound_session(self.context(org_b), factory) as db:
                pid_b = await self._backend_pid(db)
                report.add(
                    ALL_TABLES,
                    "connection reuse backend",
                    pid_b == pid_a,
                    f"A backend={pid_a} B backend={pid_b}",
                )
                echo = await self._echo(db)
                report.add(
                    ALL_TABLES,
                    "connection reuse echo",
                    echo.binding == str(org_b),
                    f"binding={echo.binding!r}",
                )
                for policy in self.policies:
                    leaked = await self._guarded(
                        report,
                        db,
                        policy.table,
                        "connection reuse",
                        lambda: self._count(db, policy, org_filter=org_a),
                    )
                    if leaked is not None:
                        self._zero_rows(report, policy.table, "connection reuse", str(org_b), leaked)

            try:
                async with bound_session(self.context(org_a), factory) as db:
                    pid_failed = await self._backend_pid(db)
                    raise _AbortedUnit()
            except _AbortedUnit:
                pass

            async with single.connect() as conn:
                pid_next = await self._backend_pid(conn)
                report.add(
                    ALL_TABLES,
                    "aborted connection discarded",
                    pid_next != pid_failed,
                    f"failed backend={pid_failed} next backend={pid_next}",
                )
                echo = await self._echo(conn)
                report.add(
                    ALL_TABLES,
                    "connection reuse unbound echo",
                    echo.binding in _EMPTY_ECHOES and echo.org_id is None,
                    f"binding={echo.binding!r}",
                )
                for policy in self.policies:
                    leaked = await self._guarded(
                        report,
                        conn,
                        policy.table,
                        "connection reuse unbound",
                        lambda: self._count(conn, policy),
                    )
                    if leaked is not None:
                        self._zero_rows(report, policy.table, "connection reuse unbound", "unset", leaked)
        finally:
            await single.dispose()


def _describe(exc: DBAPIError) -> str:
    return f"{type(exc.orig).__name__}: {exc.orig}"


class _AbortedUnit(Exception):
    """Raised inside a unit of work to exercise the error release path."""
