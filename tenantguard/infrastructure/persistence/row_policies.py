"""Row policy definitions (Postgres row-level security) for tenant isolation.

Every tenant-scoped table carries one policy, org_isolation:

    USING      (current_org_id() IS NOT NULL AND org_id = current_org_id())
    WITH CHECK (current_org_id() IS NOT NULL AND org_id = current_org_id())

RLS is ENABLED and FORCED so the table owner is also subject to it. The orgs
table is scoped on its own id column.

current_org_id() reads the transaction-local binding (app.current_org) and
returns NULL unless it is a canonical, non-nil UUID, so unset, NULL, empty,
wildcard and malformed bindings all match no rows. Comparison is by UUID
equality only. current_org_binding() echoes the raw bound text for
verification and debugging.

The registry is derived from the ORM: the orgs table plus every model using
OrgScopedMixin. Migrations and the verification harness both read it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncConnection

ORG_TABLE = "orgs"
ORG_COLUMN = "org_id"
POLICY_NAME = "org_isolation"
DEFAULT_ORG_SETTING = "app.current_org"
IMMUTABLE_ORG_TRIGGER = "prevent_org_id_change"

_UUID_PATTERN = (
    "^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def current_org_binding_function_sql(setting: str = DEFAULT_ORG_SETTING) -> str:
    """SQL for current_org_binding(): raw bound value (NULL when never set)."""
    return f"""
    CREATE OR REPLACE FUNCTION current_org_binding()
    RETURNS text
    LANGUAGE sql
    STABLE
    AS $$
        SELECT current_setting('{setting}', true)
    $$
    """


def current_org_id_function_sql(setting: str = DEFAULT_ORG_SETTING) -> str:
    """SQL for current_org_id(): bound org as uuid, or NULL (fail closed)."""
    return f"""
    CREATE OR REPLACE FUNCTION current_org_id()
    RETURNS uuid
    LANGUAGE plpgsql
    STABLE
    AS $$
    DECLARE
        raw text := current_setting('{setting}', true);
        org uuid;
    BEGIN
        IF raw IS NULL OR raw !~ '{_UUID_PATTERN}' THEN
            RETURN NULL;
        END IF;
        org := raw::uuid;
        IF org = '00000000-0000-0000-0000-000000000000'::uuid THEN
            RETURN NULL;
        END IF;
        RETURN org;
    END;
    $$
    """


def immutable_org_trigger_function_sql() -> str:
    """SQL for the trigger function that rejects org_id changes."""
    return f"""
    CREATE OR REPLACE FUNCTION {IMMUTABLE_ORG_TRIGGER}()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $$
    BEGIN
        IF NEW.org_id IS DISTINCT FROM OLD.org_id THEN
            RAISE EXCEPTION 'org_id is immutable on %', TG_TABLE_NAME
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;
        RETURN NEW;
    END;
    $$
    """


@dataclass(frozen=True)
class RowPolicy:
    """org_isolation policy for one table, keyed on column."""

    table: str
    column: str = ORG_COLUMN
    name: str = POLICY_NAME

    @property
    def predicate(self) -> str:
        return f"current_org_id() IS NOT NULL AND {self.column} = current_org_id()"

    def create_statements(self) -> list[str]:
        """Statements that enable, force and (re)create the policy. Idempotent."""
        return [
            f"ALTER TABLE {self.table} ENABLE ROW LEVEL SECURITY",
            f"ALTER TABLE {self.table} FORCE ROW LEVEL SECURITY",
            f"DROP POLICY IF EXISTS {self.name} ON {self.table}",
            f"CREATE POLICY {self.name} ON {self.table} "
            f"AS PERMISSIVE FOR ALL "
            f"USING ({self.predicate}) "
            f"WITH CHECK ({self.predicate})",
        ]

    def drop_statements(self) -> list[str]:
        return [
            f"DROP POLICY IF EXISTS {self.name} ON {self.table}",
            f"ALTER TABLE {self.table} NO FORCE ROW LEVEL SECURITY",
            f"ALTER TABLE {self.table} DISABLE ROW LEVEL SECURITY",
        ]

    def immutability_statements(self) -> list[str]:
        """Trigger blocking org_id updates (tenant-scoped tables only)."""
        if self.column != ORG_COLUMN:
            return []
        trigger = f"{IMMUTABLE_ORG_TRIGGER}_{self.table}"
        return [
            f"DROP TRIGGER IF EXISTS {trigger} ON {self.table}",
            f"CREATE TRIGGER {trigger} BEFORE UPDATE OF {ORG_COLUMN} ON {self.table} "
            f"FOR EACH ROW EXECUTE FUNCTION {IMMUTABLE_ORG_TRIGGER}()",
        ]


def tenant_scoped_tables() -> list[str]:
    """Names of all tables mapped by OrgScopedMixin models, sorted."""
    # Importing the package registers every model on Base.metadata.
    from tenantguard.infrastructure.persistence import models
    from tenantguard.infrastructure.persistence.database import Base

    names = {
        mapper.class_.__table__.name
        for mapper in Base.registry.mappers
        if models.is_org_scoped(mapper.class_)
    }
    return sorted(names)


def registered_policies() -> list[RowPolicy]:
    """orgs (on id) followed by every tenant-scoped table (on org_id)."""
    return [RowPolicy(ORG_TABLE, column="id")] + [
        RowPolicy(table) for table in tenant_scoped_tables()
    ]


@dataclass(frozen=True)
class PolicyStatus:
    """Catalog view of one table's row-level security state."""

    table: str
    exists: bool
    rls_enabled: bool
    rls_forced: bool
    has_policy: bool

    @property
    def missing(self) -> list[str]:
        if not self.exists:
            return ["table"]
        gaps = []
        if not self.rls_enabled:
            gaps.append("rls_enabled")
        if not self.rls_forced:
            gaps.append("rls_forced")
        if not self.has_policy:
            gaps.append(f"policy {POLICY_NAME}")
        return gaps

    @property
    def ok(self) -> bool:
        return not self.missing


_POLICY_STATUS_SQL = text(
    """
    SELECT c.relname AS table_name,
           c.relrowsecurity AS rls_enabled,
           c.relforcerowsecurity AS rls_forced,
           EXISTS (
               SELECT 1 FROM pg_policies p
               WHERE p.schemaname = n.nspname
                 AND p.tablename = c.relname
                 AND p.policyname = :policy
           ) AS has_policy
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = current_schema()
      AND c.relkind = 'r'
      AND c.relname IN :tables
    """
).bindparams(bindparam("tables", expanding=True))

_ORG_COLUMN_TABLES_SQL = text(
    """
    SELECT DISTINCT table_name
    FROM information_schema.columns
    WHERE table_schema = current_schema()
      AND column_name = :column
    ORDER BY table_name
    """
)


async def fetch_policy_status(
    conn: AsyncConnection, tables: Sequence[str]
) -> list[PolicyStatus]:
    """Read RLS flags and policy presence from the catalog for each table."""
    if not tables:
        return []
    result = await conn.execute(
        _POLICY_STATUS_SQL, {"policy": POLICY_NAME, "tables": list(tables)}
    )
    found = {row.table_name: row for row in result}
    statuses = []
    for table in tables:
        row = found.get(table)
        if row is None:
            statuses.append(PolicyStatus(table, False, False, False, False))
        else:
            statuses.append(
                PolicyStatus(
                    table,
                    True,
                    bool(row.rls_enabled),
                    bool(row.rls_forced),
                    bool(row.has_policy),
                )
            )
    return statuses


async def discover_org_column_tables(conn: AsyncConnection) -> list[str]:
    """Tables in the current schema that carry an org_id column."""
    result = await conn.execute(_ORG_COLUMN_TABLES_SQL, {"column": ORG_COLUMN})
    return [row.table_name for row in result]
