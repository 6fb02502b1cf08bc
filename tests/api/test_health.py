"""Smoke tests for health and readiness."""

import pytest
from httpx import AsyncClient

from tenantguard.core.config import get_settings
from tenantguard.infrastructure.persistence import rls_check
from tenantguard.infrastructure.persistence.rls_check import RLSCheckResult
from tenantguard.infrastructure.persistence.row_policies import PolicyStatus


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_ready_without_rls_check(client: AsyncClient) -> None:
    """Readiness is ok when the RLS readiness check is disabled (default)."""
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_ready_returns_503_on_policy_gap(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    """With RLS_READINESS_CHECK, a failing check is reported as 503 with the gap tables."""
    monkeypatch.setenv("RLS_READINESS_CHECK", "true")
    get_settings.cache_clear()

    async def failing_check(database_url: str, **kwargs) -> RLSCheckResult:
        return RLSCheckResult(
            ok=False,
            message="RLS check failed: jobs: missing rls_forced",
            tables=[
                PolicyStatus("customers", True, True, True, True),
                PolicyStatus("jobs", True, True, False, True),
            ],
            unregistered=["notes"],
        )

    monkeypatch.setattr(rls_check, "run_rls_check", failing_check)
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "not_ready"
    assert "rls_forced" in body["message"]
    assert body["tables"] == ["jobs", "notes"]


async def test_ready_ok_when_check_passes(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("RLS_READINESS_CHECK", "true")
    get_settings.cache_clear()

    async def passing_check(database_url: str, **kwargs) -> RLSCheckResult:
        return RLSCheckResult(ok=True, message="RLS checks passed.")

    monkeypatch.setattr(rls_check, "run_rls_check", passing_check)
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
