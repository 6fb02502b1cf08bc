"""Presentation-layer dependency injection for tenant-bound requests.

Chain: bearer token → AuthenticatedSession → TenantContext → bound session.
Routes that touch tenant data depend on get_bound_session (and, where they
need the ids, get_tenant_context); FastAPI resolves each dependency once per
request so both see the same context. Nothing here is ambient: the context is
a plain value passed to repositories.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.config import get_settings
from tenantguard.domain.exceptions import AuthenticationException, ValidationException
from tenantguard.domain.tenant_context import AuthenticatedSession, TenantContext, resolve
from tenantguard.infrastructure.persistence.database import bound_session
from tenantguard.infrastructure.security.jwt import session_from_token

_http_bearer = HTTPBearer(auto_error=False)


async def get_authenticated_session(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_http_bearer)],
) -> AuthenticatedSession:
    """Verified identity from the bearer token plus the optional org selector header.

    Raises AuthenticationException (401) when the token is missing or invalid.
    """
    if not credentials:
        raise AuthenticationException("Not authenticated")
    selector = request.headers.get(get_settings().org_selector_header)
    try:
        return session_from_token(credentials.credentials, selector)
    except (ValueError, ValidationException) as e:
        raise AuthenticationException("Invalid token") from e


async def get_tenant_context(
    session: Annotated[AuthenticatedSession, Depends(get_authenticated_session)],
) -> TenantContext:
    """Resolve the caller to exactly one organization (AuthError → 403)."""
    return resolve(session)


async def get_bound_session(
    ctx: Annotated[TenantContext, Depends(get_tenant_context)],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the caller's organization for this request."""
    async with bound_session(ctx) as db:
        yield db
