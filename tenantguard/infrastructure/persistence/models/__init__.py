"""Persistence models: ORM entities and mixins."""

from tenantguard.infrastructure.persistence.models.billing import Invoice, ItemPreset, Quote
from tenantguard.infrastructure.persistence.models.customer import Customer
from tenantguard.infrastructure.persistence.models.equipment import Equipment
from tenantguard.infrastructure.persistence.models.job import Job, JobNotification
from tenantguard.infrastructure.persistence.models.membership import Membership
from tenantguard.infrastructure.persistence.models.mixins import (
    OrgScopedMixin,
    OrgScopedModel,
    TimestampMixin,
    UuidPkMixin,
    is_org_scoped,
)
from tenantguard.infrastructure.persistence.models.org import Org
from tenantguard.infrastructure.persistence.models.user import User

__all__ = [
    "Org",
    "User",
    "Membership",
    "Customer",
    "Equipment",
    "Job",
    "JobNotification",
    "Quote",
    "Invoice",
    "ItemPreset",
    "OrgScopedMixin",
    "OrgScopedModel",
    "TimestampMixin",
    "UuidPkMixin",
    "is_org_scoped",
]
