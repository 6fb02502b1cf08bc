"""Tests for the explicit org_id filter layer (no database)."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from tenantguard.domain.exceptions import ResourceNotFoundException, ValidationException
from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.models import Customer, Equipment, Job, Org, User
from tenantguard.infrastructure.persistence.repositories import (
    CustomerRepository,
    JobRepository,
    TenantScopedRepository,
    repository_for,
    scoped_select,
)


def _ctx() -> TenantContext:
    return TenantContext(org_id=uuid4(), user_id=uuid4())


def _db(scalar: object = None, scalars: list | None = None) -> MagicMock:
    db = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = scalars or []
    db.execute = AsyncMock(return_value=result)
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    return db


def _compiled(stmt):
    return stmt.compile(dialect=postgresql.dialect())


def test_repository_requires_context() -> None:
    """Constructing a repository without a TenantContext fails immediately."""
    with pytest.raises(TypeError):
        CustomerRepository(_db(), None)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        TenantScopedRepository(_db(), str(uuid4()), Customer)  # type: ignore[arg-type]


@pytest.mark.parametrize("model", [Org, User, object])
def test_repository_requires_tenant_scoped_model(model: type) -> None:
    """Only OrgScopedMixin models can back a tenant-scoped repository."""
    with pytest.raises(TypeError):
        TenantScopedRepository(_db(), _ctx(), model)


def test_select_carries_org_filter() -> None:
    """The base statement filters on the context's org id."""
    ctx = _ctx()
    compiled = _compiled(CustomerRepository(_db(), ctx).select())
    assert "customers.org_id = %(org_id_1)s" in str(compiled)
    assert compiled.params["org_id_1"] == ctx.org_id


def test_scoped_select_helper() -> None:
    ctx = _ctx()
    compiled = _compiled(scoped_select(ctx, Job))
    assert "jobs.org_id = %(org_id_1)s" in str(compiled)
    assert compiled.params["org_id_1"] == ctx.org_id
    with pytest.raises(TypeError):
        scoped_select(None, Job)  # type: ignore[arg-type]


async def test_get_by_id_filters_on_org_and_id() -> None:
    ctx = _ctx()
    db = _db()
    entity_id = uuid4()
    await CustomerRepository(db, ctx).get_by_id(entity_id)
    compiled = _compiled(db.execute.call_args.args[0])
    assert set(compiled.params.values()) >= {ctx.org_id, entity_id}
    assert "customers.org_id" in str(compiled)


async def test_get_by_id_malformed_id_returns_none() -> None:
    """A malformed id is indistinguishable from a missing row and sends no query."""
    db = _db()
    assert await CustomerRepository(db, _ctx()).get_by_id("not-a-uuid") is None
    db.execute.assert_not_awaited()


async def test_get_or_404_missing() -> None:
    """Missing and other-org rows raise the same ResourceNotFoundException."""
    entity_id = uuid4()
    with pytest.raises(ResourceNotFoundException) as exc_info:
        await CustomerRepository(_db(scalar=None), _ctx()).get_or_404(entity_id)
    assert exc_info.value.details == {"resource_type": "Customer", "resource_id": str(entity_id)}


async def test_list_and_count_are_filtered() -> None:
    ctx = _ctx()
    db = _db()
    db.execute.return_value.scalar_one.return_value = 3
    repo = CustomerRepository(db, ctx)
    assert await repo.list() == []
    assert await repo.count() == 3
    for call in db.execute.call_args_list:
        compiled = _compiled(call.args[0])
        assert ctx.org_id in compiled.params.values()


async def test_create_stamps_org_id() -> None:
    """create() sets org_id from the context."""
    ctx = _ctx()
    db = _db()
    customer = Customer(name="Acme")
    created = await CustomerRepository(db, ctx).create(customer)
    assert created.org_id == ctx.org_id
    db.add.assert_called_once_with(customer)
    db.flush.assert_awaited_once()


async def test_create_rejects_foreign_org_id() -> None:
    """A pre-set org_id for another org is refused before anything is added."""
    db = _db()
    with pytest.raises(ValidationException):
        await CustomerRepository(db, _ctx()).create(Customer(name="Acme", org_id=uuid4()))
    db.add.assert_not_called()


async def test_create_rejects_wrong_model() -> None:
    with pytest.raises(TypeError):
        await CustomerRepository(_db(), _ctx()).create(Job(title="x"))  # type: ignore[arg-type]


async def test_update_cannot_change_org_id() -> None:
    ctx = _ctx()
    customer = Customer(id=uuid4(), org_id=ctx.org_id, name="Acme")
    with pytest.raises(ValidationException):
        await CustomerRepository(_db(), ctx).update(customer, org_id=uuid4())


async def test_update_applies_values() -> None:
    ctx = _ctx()
    db = _db()
    customer = Customer(id=uuid4(), org_id=ctx.org_id, name="Acme")
    await CustomerRepository(db, ctx).update(customer, name="Acme Pty Ltd")
    assert customer.name == "Acme Pty Ltd"
    db.flush.assert_awaited_once()


async def test_update_unknown_attribute() -> None:
    ctx = _ctx()
    customer = Customer(id=uuid4(), org_id=ctx.org_id, name="Acme")
    with pytest.raises(ValidationException):
        await CustomerRepository(_db(), ctx).update(customer, colour="red")


async def test_update_and_delete_foreign_row_look_missing() -> None:
    """Rows of another org are treated as not found."""
    foreign = Customer(id=uuid4(), org_id=uuid4(), name="Other")
    db = _db()
    repo = CustomerRepository(db, _ctx())
    with pytest.raises(ResourceNotFoundException):
        await repo.update(foreign, name="x")
    with pytest.raises(ResourceNotFoundException):
        await repo.delete(foreign)
    db.delete.assert_not_awaited()


async def test_search_by_name_is_filtered_and_escaped() -> None:
    ctx = _ctx()
    db = _db()
    await CustomerRepository(db, ctx).search_by_name("50%_off")
    compiled = _compiled(db.execute.call_args.args[0])
    assert ctx.org_id in compiled.params.values()
    assert "%50\\%\\_off%" in compiled.params.values()


async def test_list_by_status_is_filtered() -> None:
    ctx = _ctx()
    db = _db()
    await JobRepository(db, ctx).list_by_status("scheduled")
    compiled = _compiled(db.execute.call_args.args[0])
    assert "jobs.org_id" in str(compiled)
    assert {ctx.org_id, "scheduled"} <= set(compiled.params.values())


def test_repository_for() -> None:
    """Dedicated repositories where they exist, a generic scoped one otherwise."""
    ctx = _ctx()
    db = _db()
    assert isinstance(repository_for(Customer, db, ctx), CustomerRepository)
    assert isinstance(repository_for(Job, db, ctx), JobRepository)
    generic = repository_for(Equipment, db, ctx)
    assert type(generic) is TenantScopedRepository
    assert generic.model is Equipment
    with pytest.raises(TypeError):
        repository_for(Org, db, ctx)
