"""Equipment ORM model."""

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.infrastructure.persistence.database import Base
from tenantguard.infrastructure.persistence.models.mixins import OrgScopedModel


class Equipment(OrgScopedModel, Base):
    """Serviced equipment, optionally owned by a customer. Table: equipment."""

    __tablename__ = "equipment"

    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    make: Mapped[str | None] = mapped_column(String(255), nullable=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    serial: Mapped[str | None] = mapped_column(String(255), nullable=True)
