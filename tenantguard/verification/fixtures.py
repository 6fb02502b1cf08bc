"""Isolation fixture: two organizations with a known, unequal row count.

ORG-A gets 12 customers and ORG-B gets 5; every other tenant-scoped table gets
one row per org. All rows are written through bound_session, so seeding
itself goes through the row policies (WITH CHECK) and the org_id guard.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.database import bound_session
from tenantguard.infrastructure.persistence.models import (
    Customer,
    Equipment,
    Invoice,
    ItemPreset,
    Job,
    JobNotification,
    Membership,
    Org,
    Quote,
    User,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_COUNTS = (("ORG-A", 12), ("ORG-B", 5))


@dataclass(frozen=True)
class SeededOrg:
    name: str
    org_id: UUID
    user_id: UUID
    customers: int


async def _seed_org(db: AsyncSession, ctx: TenantContext, name: str, customers: int) -> None:
    # Flushed in dependency order; the models declare no relationships.
    db.add(Org(id=ctx.org_id, name=name))
    await db.flush()
    db.add(User(id=ctx.user_id, email=f"seed+{ctx.org_id}@example.com", name=f"{name} owner"))
    await db.flush()

    db.add(Membership(user_id=ctx.user_id, role="owner"))
    customer_rows = [
        Customer(name=f"{name} customer {i:02d}", email=f"c{i}@{name.lower()}.example.com")
        for i in range(1, customers + 1)
    ]
    db.add_all(customer_rows)
    db.add(ItemPreset(name="Call-out fee", unit_amount=Decimal("95.00"), tax_rate=Decimal("10.00")))
    await db.flush()

    first = customer_rows[0].id if customer_rows else None
    job = Job(customer_id=first, title=f"{name} service visit", created_by=ctx.user_id)
    db.add_all(
        [
            job,
            Equipment(customer_id=first, name="Split system", make="Daikin"),
            Quote(customer_id=first, title=f"{name} quote", total=Decimal("450.00")),
        ]
    )
    await db.flush()

    db.add_all(
        [
            JobNotification(
                job_id=job.id,
                channel="email",
                to_addr=f"c1@{name.lower()}.example.com",
                body="Your technician is on the way.",
                direction="outbound",
                status="sent",
            ),
            Invoice(job_id=job.id, customer_id=first, total=Decimal("495.00")),
        ]
    )
    await db.flush()


async def seed_isolation_fixture(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    customer_counts: Sequence[tuple[str, int]] = DEFAULT_CUSTOMER_COUNTS,
) -> list[SeededOrg]:
    """Create one organization per (name, customer count) and return them in order."""
    seeded = []
    for name, customers in customer_counts:
        ctx = TenantContext(org_id=uuid4(), user_id=uuid4())
        async with bound_session(ctx, session_factory) as db:
            await _seed_org(db, ctx, name, customers)
        logger.info("Seeded %s (%s) with %d customers", name, ctx.org_id, customers)
        seeded.append(SeededOrg(name, ctx.org_id, ctx.user_id, customers))
    return seeded
