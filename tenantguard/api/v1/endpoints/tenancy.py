"""Tenancy diagnostics: what the caller resolved to and what the database sees."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.v1.dependencies import get_bound_session, get_tenant_context
from tenantguard.core.config import get_settings
from tenantguard.domain.tenant_context import TenantContext
from tenantguard.schemas.tenancy import BindingResponse

router = APIRouter()

_BINDING_SQL = text("SELECT current_org_binding() AS binding, current_org_id() AS org_id")


@router.get("/binding", response_model=BindingResponse)
async def get_binding(
    ctx: Annotated[TenantContext, Depends(get_tenant_context)],
    db: Annotated[AsyncSession, Depends(get_bound_session)],
) -> BindingResponse:
    """Report the resolved context and the server-side binding of this request's transaction."""
    row = (await db.execute(_BINDING_SQL)).one()
    return BindingResponse(
        org_id=ctx.org_id,
        user_id=ctx.user_id,
        setting=get_settings().org_setting_name,
        bound_value=row.binding,
        bound_org_id=row.org_id,
        consistent=row.org_id == ctx.org_id,
    )
