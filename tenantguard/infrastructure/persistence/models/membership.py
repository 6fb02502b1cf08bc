"""Membership ORM model: user belongs to organization with a role."""

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tenantguard.infrastructure.persistence.database import Base
from tenantguard.infrastructure.persistence.models.mixins import OrgScopedModel


class Membership(OrgScopedModel, Base):
    """User-org relationship. Table: memberships. Unique (org_id, user_id)."""

    __tablename__ = "memberships"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="member")

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_membership_org_user"),
    )
