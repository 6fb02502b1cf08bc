"""Make org_id immutable on tenant-scoped tables

Revision ID: 0003
Revises: 0002
Create Date: 2026-09-29 08:03:27.662015

A row can never move between organizations: BEFORE UPDATE OF org_id triggers
reject any change. The ORM before_flush guard enforces the same rule earlier.
"""

from typing import Sequence, Union

from alembic import op

from tenantguard.infrastructure.persistence.row_policies import (
    IMMUTABLE_ORG_TRIGGER,
    RowPolicy,
    immutable_org_trigger_function_sql,
)

# revision identifiers, used by Alembic.
revision: str = "0003"
down_revision: Union[str, Sequence[str], None] = "0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TENANT_SCOPED_TABLES = [
    "customers",
    "equipment",
    "invoices",
    "item_presets",
    "job_notifications",
    "jobs",
    "memberships",
    "quotes",
]


def upgrade() -> None:
    op.execute(immutable_org_trigger_function_sql())
    for table in TENANT_SCOPED_TABLES:
        for statement in RowPolicy(table).immutability_statements():
            op.execute(statement)


def downgrade() -> None:
    for table in TENANT_SCOPED_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS {IMMUTABLE_ORG_TRIGGER}_{table} ON {table}")
    op.execute(f"DROP FUNCTION IF EXISTS {IMMUTABLE_ORG_TRIGGER}()")
