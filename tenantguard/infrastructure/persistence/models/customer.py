"""Customer ORM model."""

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.infrastructure.persistence.database import Base
from tenantguard.infrastructure.persistence.models.mixins import OrgScopedModel


class Customer(OrgScopedModel, Base):
    """Customer of an organization. Table: customers. Index: (org_id, name)."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_customers_org_name", "org_id", "name"),)
