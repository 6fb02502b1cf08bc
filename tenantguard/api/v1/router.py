"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags.
"""

from fastapi import APIRouter

from tenantguard.api.v1.endpoints import health, tenancy

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(tenancy.router, prefix="/tenancy", tags=["tenancy"])
