"""Initial schema: orgs, users, memberships and tenant-scoped business tables

Revision ID: 0001
Revises:
Create Date: 2026-09-28 10:12:44.518302

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _org_id() -> sa.Column:
    return sa.Column(
        "org_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _fk(name: str, target: str, ondelete: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _money(name: str, precision: int = 10) -> sa.Column:
    return sa.Column(
        name, sa.Numeric(precision, 2), server_default=sa.text("0"), nullable=False
    )


def _create_org_scoped(table: str, *columns: sa.Column | sa.Constraint) -> None:
    op.create_table(table, _id(), _org_id(), *columns, *_timestamps())
    op.create_index(op.f(f"ix_{table}_org_id"), table, ["org_id"], unique=False)


def upgrade() -> None:
    """Create initial schema."""
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "orgs",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("abn", sa.String(50), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email"),
    )

    _create_org_scoped(
        "memberships",
        _fk("user_id", "users.id", "CASCADE", nullable=False),
        sa.Column("role", sa.String(50), server_default="member", nullable=False),
        sa.UniqueConstraint("org_id", "user_id", name="uq_membership_org_user"),
    )
    op.create_index(
        op.f("ix_memberships_user_id"), "memberships", ["user_id"], unique=False
    )

    _create_org_scoped(
        "customers",
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_name", sa.Text(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_customers_org_name", "customers", ["org_id", "name"])

    _create_org_scoped(
        "equipment",
        _fk("customer_id", "customers.id", "SET NULL"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("make", sa.String(255), nullable=True),
        sa.Column("model", sa.String(255), nullable=True),
        sa.Column("serial", sa.String(255), nullable=True),
    )

    _create_org_scoped(
        "jobs",
        _fk("customer_id", "customers.id", "SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), server_default="new", nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        _fk("created_by", "users.id", "SET NULL"),
    )
    op.create_index("ix_jobs_org_status", "jobs", ["org_id", "status"])

    _create_org_scoped(
        "job_notifications",
        _fk("job_id", "jobs.id", "CASCADE"),
        sa.Column("channel", sa.String(50), nullable=False),
        sa.Column("to_addr", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("status", sa.String(50), nullable=True),
    )

    _create_org_scoped(
        "quotes",
        _fk("customer_id", "customers.id", "SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "items",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("currency", sa.String(3), server_default="AUD", nullable=False),
        _money("total"),
        sa.Column("status", sa.String(50), server_default="draft", nullable=False),
    )

    _create_org_scoped(
        "invoices",
        _fk("job_id", "jobs.id", "SET NULL"),
        _fk("customer_id", "customers.id", "SET NULL"),
        sa.Column(
            "items",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("currency", sa.String(3), server_default="AUD", nullable=False),
        _money("total"),
        sa.Column("status", sa.String(50), server_default="draft", nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
    )

    _create_org_scoped(
        "item_presets",
        sa.Column("name", sa.String(255), nullable=False),
        _money("unit_amount"),
        _money("tax_rate", precision=5),
    )


def downgrade() -> None:
    """Drop all tables (reverse dependency order)."""
    for table in (
        "item_presets",
        "invoices",
        "quotes",
        "job_notifications",
        "jobs",
        "equipment",
        "customers",
        "memberships",
        "users",
        "orgs",
    ):
        op.drop_table(table)
