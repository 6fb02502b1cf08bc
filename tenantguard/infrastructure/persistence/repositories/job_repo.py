"""Job repository (tenant-scoped)."""

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.models.job import Job
from tenantguard.infrastructure.persistence.repositories.base import (
    TenantScopedRepository,
)


class JobRepository(TenantScopedRepository[Job]):
    def __init__(self, db: AsyncSession, ctx: TenantContext) -> None:
        super().__init__(db, ctx, Job)

    async def list_by_status(
        self, status: str, skip: int = 0, limit: int = 100
    ) -> list[Job]:
        """Jobs in the bound org with this status, soonest scheduled first."""
        stmt = (
            self.select()
            .where(Job.status == status)
            .order_by(Job.scheduled_at.asc().nulls_last(), Job.created_at)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
