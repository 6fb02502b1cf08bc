"""Organization ORM model. Root of the tenant hierarchy (no org_id column).

The orgs table is policy-scoped on its own id: a bound session sees only
the bound organization's row.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.infrastructure.persistence.database import Base
from tenantguard.infrastructure.persistence.models.mixins import (
    TimestampMixin,
    UuidPkMixin,
)


class Org(UuidPkMixin, TimestampMixin, Base):
    """Organization (tenant). Table: orgs."""

    __tablename__ = "orgs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    abn: Mapped[str | None] = mapped_column(String(50), nullable=True)
