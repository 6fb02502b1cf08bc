"""Health check endpoint. No dependencies; used for liveness and readiness checks."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tenantguard.core.config import get_settings
from tenantguard.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Not ready (e.g. RLS check failed)", "model": ReadinessErrorResponse}},
)
async def readiness_check() -> ReadinessResponse | JSONResponse:
    """Return 200 if ready; 503 if RLS readiness check is enabled and fails.

    When RLS_READINESS_CHECK is True, the app role must be NOSUPERUSER and
    NOBYPASSRLS and (with RLS_CHECK_POLICIES) every tenant-scoped table must
    have RLS enabled, forced and the org_isolation policy.
    """
    settings = get_settings()
    if not settings.rls_readiness_check:
        return ReadinessResponse()

    from tenantguard.infrastructure.persistence.rls_check import run_rls_check

    result = await run_rls_check(
        database_url=settings.database_url,
        app_role=settings.rls_check_app_role,
        verify_policies=settings.rls_check_policies,
    )

    if result.ok:
        return ReadinessResponse()
    return JSONResponse(
        status_code=503,
        content=ReadinessErrorResponse(
            status="not_ready",
            message=result.message,
            tables=[s.table for s in result.tables if not s.ok] + result.unregistered,
        ).model_dump(),
    )
