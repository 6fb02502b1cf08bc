"""User ORM model. Global identity; organization access goes through Membership."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.infrastructure.persistence.database import Base
from tenantguard.infrastructure.persistence.models.mixins import (
    TimestampMixin,
    UuidPkMixin,
)


class User(UuidPkMixin, TimestampMixin, Base):
    """User identity. Table: users. Not tenant-scoped."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
