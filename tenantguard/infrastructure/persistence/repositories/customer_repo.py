"""Customer repository (tenant-scoped)."""

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.models.customer import Customer
from tenantguard.infrastructure.persistence.repositories.base import (
    TenantScopedRepository,
)


class CustomerRepository(TenantScopedRepository[Customer]):
    def __init__(self, db: AsyncSession, ctx: TenantContext) -> None:
        super().__init__(db, ctx, Customer)

    async def search_by_name(self, term: str, limit: int = 50) -> list[Customer]:
        """Case-insensitive substring match on name within the bound org."""
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = (
            self.select()
            .where(Customer.name.ilike(f"%{escaped}%", escape="\\"))
            .order_by(Customer.name)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
