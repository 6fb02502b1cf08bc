"""Enable org isolation: helper functions and RLS policies

Revision ID: 0002
Revises: 0001
Create Date: 2026-09-28 10:41:03.117940

Adds current_org_binding() and the hardened current_org_id() (NULL for unset,
empty, malformed or nil bindings), then ENABLE + FORCE row level security with
an org_isolation policy on every tenant-scoped table. orgs is scoped on id.
Statements are idempotent (CREATE OR REPLACE / DROP ... IF EXISTS). The functions
read the configured ORG_SETTING_NAME (default app.current_org).
"""

from typing import Sequence, Union

from alembic import op

from tenantguard.core.config import get_settings
from tenantguard.infrastructure.persistence.row_policies import (
    ORG_TABLE,
    RowPolicy,
    current_org_binding_function_sql,
    current_org_id_function_sql,
)

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
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

POLICIES = [RowPolicy(ORG_TABLE, column="id")] + [
    RowPolicy(table) for table in TENANT_SCOPED_TABLES
]


def upgrade() -> None:
    setting = get_settings().org_setting_name
    op.execute(current_org_binding_function_sql(setting))
    op.execute(current_org_id_function_sql(setting))
    for policy in POLICIES:
        for statement in policy.create_statements():
            op.execute(statement)


def downgrade() -> None:
    for policy in POLICIES:
        for statement in policy.drop_statements():
            op.execute(statement)
    op.execute("DROP FUNCTION IF EXISTS current_org_id()")
    op.execute("DROP FUNCTION IF EXISTS current_org_binding()")
