"""Tenant-scoped repository: every statement carries WHERE org_id = ctx.org_id.

This is the explicit filter layer. It is independent of the row policies and
must stand on its own: a repository cannot be built without a TenantContext,
and the org id it filters on comes only from that context.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.domain.exceptions import ResourceNotFoundException, ValidationException
from tenantguard.domain.tenant_context import TenantContext
from tenantguard.infrastructure.persistence.database import Base
from tenantguard.infrastructure.persistence.models.mixins import is_org_scoped


def _check_scoped_model(model: object) -> None:
    if not isinstance(model, type) or not is_org_scoped(model):
        raise TypeError(f"{model!r} is not a tenant-scoped model")


def scoped_select(ctx: TenantContext, model: type[Any]) -> Select[Any]:
    """Return select(model) filtered to ctx.org_id."""
    if not isinstance(ctx, TenantContext):
        raise TypeError(f"a TenantContext is required, got {type(ctx).__name__}")
    _check_scoped_model(model)
    return select(model).where(model.org_id == ctx.org_id)


ModelType = TypeVar("ModelType", bound=Base)


class TenantScopedRepository(Generic[ModelType]):
    """CRUD over one tenant-scoped model, restricted to one organization.

    Rows of another organization are indistinguishable from missing rows.
    """

    def __init__(
        self, db: AsyncSession, ctx: TenantContext, model: type[ModelType]
    ) -> None:
        if not isinstance(ctx, TenantContext):
            raise TypeError(
                f"{type(self).__name__} requires a TenantContext, got {type(ctx).__name__}"
            )
        _check_scoped_model(model)
        self.db = db
        self.ctx = ctx
        self.model = model

    @property
    def org_id(self) -> UUID:
        return self.ctx.org_id

    def select(self) -> Select[Any]:
        """Base statement for this repository; callers may add filters."""
        return scoped_select(self.ctx, self.model)

    async def get_by_id(self, entity_id: UUID | str) -> ModelType | None:
        """Return the record with this id in the bound org, or None."""
        model: Any = self.model
        try:
            key = entity_id if isinstance(entity_id, UUID) else UUID(str(entity_id))
        except ValueError:
            return None
        result = await self.db.execute(self.select().where(model.id == key))
        return result.scalar_one_or_none()

    async def get_or_404(self, entity_id: UUID | str) -> ModelType:
        """Like get_by_id but raises ResourceNotFoundException when absent."""
        obj = await self.get_by_id(entity_id)
        if obj is None:
            raise ResourceNotFoundException(self.model.__name__, str(entity_id))
        return obj

    async def list(self, skip: int = 0, limit: int = 100) -> list[ModelType]:
        """Return records with pagination, oldest first."""
        model: Any = self.model
        stmt = self.select().order_by(model.created_at, model.id).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        model: Any = self.model
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(model.org_id == self.ctx.org_id)
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def create(self, obj: ModelType) -> ModelType:
        """Stamp org_id from the context and persist.

        Raises:
            ValidationException: If obj already carries a different org_id.
        """
        self._ensure_instance(obj)
        current = getattr(obj, "org_id", None)
        if current is not None and current != self.ctx.org_id:
            raise ValidationException(
                f"{self.model.__name__}.org_id does not match the bound organization",
                field="org_id",
            )
        obj.org_id = self.ctx.org_id  # type: ignore[attr-defined]
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def update(self, obj: ModelType, **values: Any) -> ModelType:
        """Apply values to a record of the bound org; org_id cannot change."""
        self._ensure_instance(obj)
        self._ensure_owned(obj)
        if "org_id" in values:
            raise ValidationException(
                f"{self.model.__name__}.org_id is immutable", field="org_id"
            )
        for key, value in values.items():
            if not hasattr(self.model, key):
                raise ValidationException(
                    f"{self.model.__name__} has no attribute {key}", field=key
                )
            setattr(obj, key, value)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: ModelType) -> None:
        """Delete a record of the bound org."""
        self._ensure_instance(obj)
        self._ensure_owned(obj)
        await self.db.delete(obj)
        await self.db.flush()

    def _ensure_instance(self, obj: object) -> None:
        if not isinstance(obj, self.model):
            raise TypeError(
                f"expected {self.model.__name__}, got {type(obj).__name__}"
            )

    def _ensure_owned(self, obj: Any) -> None:
        if obj.org_id != self.ctx.org_id:
            raise ResourceNotFoundException(self.model.__name__, str(obj.id))
