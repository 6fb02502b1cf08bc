"""SQLAlchemy mixins for common model patterns.

Provides: UuidPkMixin, OrgScopedMixin, TimestampMixin and the combined
OrgScopedModel. Every tenant-scoped model inherits OrgScopedMixin; the
row-policy registry and the verification harness discover tenant-scoped
tables through it.

A before_flush guard keeps org_id consistent with the bound unit of work:
new rows get the bound org stamped when unset and are rejected when set to
another org; org_id can never change on an existing row.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, event, inspect as sa_inspect
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, Session, declared_attr, mapped_column
from sqlalchemy.sql import func

from tenantguard.domain.exceptions import ValidationException
from tenantguard.infrastructure.persistence.database import SESSION_ORG_KEY


class UuidPkMixin:
    """Mixin for models using a UUID primary key (client and server default)."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            server_default=func.gen_random_uuid(),
        )


class OrgScopedMixin:
    """Mixin for tenant-scoped models: org_id FK to orgs.id, not null, indexed, immutable."""

    @declared_attr
    def org_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("orgs.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class TimestampMixin:
    """Mixin for created_at and updated_at (server defaults, timezone-aware)."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )


class OrgScopedModel(UuidPkMixin, OrgScopedMixin, TimestampMixin):
    """Combined mixin: UUID pk + org_id + created_at/updated_at."""

    __abstract__ = True


def is_org_scoped(model: object) -> bool:
    """Return True if model (class or instance) is tenant-scoped."""
    cls = model if isinstance(model, type) else type(model)
    return issubclass(cls, OrgScopedMixin)


@event.listens_for(Session, "before_flush")
def guard_org_id(session: Session, flush_context, instances) -> None:
    """Stamp/validate org_id on new rows and block org_id changes on dirty rows."""
    bound_org = session.info.get(SESSION_ORG_KEY)

    for obj in session.new:
        if not is_org_scoped(obj):
            continue
        if obj.org_id is None and bound_org is not None:
            obj.org_id = bound_org
        elif bound_org is not None and obj.org_id != bound_org:
            raise ValidationException(
                f"{type(obj).__name__}.org_id does not match the bound organization",
                field="org_id",
            )

    for obj in session.dirty:
        if not is_org_scoped(obj):
            continue
        history = sa_inspect(obj).attrs.org_id.history
        if history.deleted:
            raise ValidationException(
                f"{type(obj).__name__}.org_id is immutable", field="org_id"
            )
