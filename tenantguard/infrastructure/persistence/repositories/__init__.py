"""Tenant-scoped repositories (explicit org_id filter layer)."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.models import Customer, Job
from tenantguard.infrastructure.persistence.repositories.base import (
    TenantScopedRepository,
    scoped_select,
)
from tenantguard.infrastructure.persistence.repositories.customer_repo import (
    CustomerRepository,
)
from tenantguard.infrastructure.persistence.repositories.job_repo import JobRepository

_REPOSITORIES: dict[type[Any], type[TenantScopedRepository[Any]]] = {
    Customer: CustomerRepository,
    Job: JobRepository,
}


def repository_for(
    model: type[Any], db: AsyncSession, ctx: TenantContext
) -> TenantScopedRepository[Any]:
    """Return the dedicated repository for model, or a generic scoped one."""
    repo_cls = _REPOSITORIES.get(model)
    if repo_cls is not None:
        return repo_cls(db, ctx)  # type: ignore[call-arg]
    return TenantScopedRepository(db, ctx, model)


__all__ = [
    "CustomerRepository",
    "JobRepository",
    "TenantScopedRepository",
    "repository_for",
    "scoped_select",
]
