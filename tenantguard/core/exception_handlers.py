"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Maps domain and framework
exceptions to HTTP responses.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantguard.core.config import get_settings
from tenantguard.domain.exceptions import AuthError, TenantGuardException

logger = logging.getLogger(__name__)

# Map domain error_code to HTTP status when applicable
_ERROR_CODE_STATUS: dict[str, int] = {
    "RESOURCE_NOT_FOUND": 404,
    "AUTHENTICATION_ERROR": 401,
    "AUTH_ERROR": 403,
    "NO_ORGANIZATION": 403,
    "AMBIGUOUS_ORGANIZATION": 403,
    "ORGANIZATION_NOT_PERMITTED": 403,
    "VALIDATION_ERROR": 400,
    "BINDING_ERROR": 503,
    "POLICY_GAP": 500,
    "ISOLATION_VIOLATION": 500,
    "SERVICE_UNAVAILABLE": 503,
}


def status_for(exc: TenantGuardException) -> int:
    """HTTP status for a domain exception; any AuthError is 403."""
    if exc.error_code in _ERROR_CODE_STATUS:
        return _ERROR_CODE_STATUS[exc.error_code]
    if isinstance(exc, AuthError):
        return 403
    return 400


def _tenantguard_exception_handler(
    request: Request, exc: TenantGuardException
) -> JSONResponse:
    """Return JSON from TenantGuardException.to_dict() with appropriate status code."""
    status = status_for(exc)
    if status >= 500:
        logger.error("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)
    if status == 401:
        return JSONResponse(
            status_code=status,
            content=exc.to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return JSONResponse(
        status_code=status,
        content=exc.to_dict(),
    )


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 422 with validation error details."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": exc.errors(),
        },
    )


def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Return JSON for Starlette HTTP exceptions (status + detail)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return 500; include detail only when debug is True."""
    logger.exception("Unhandled exception: %s", exc)
    settings = get_settings()
    detail: Any = str(exc) if settings.debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": detail},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app.

    Call once after creating the app. Handlers: TenantGuardException (and
    subclasses), RequestValidationError, StarletteHTTPException, generic Exception.
    """
    app.add_exception_handler(TenantGuardException, _tenantguard_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
