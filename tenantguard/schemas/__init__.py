"""API request/response schemas (Pydantic)."""

from tenantguard.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)
from tenantguard.schemas.tenancy import BindingResponse

__all__ = [
    "BindingResponse",
    "HealthResponse",
    "ReadinessErrorResponse",
    "ReadinessResponse",
]
