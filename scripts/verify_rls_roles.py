"""Verify RLS readiness: app role must be NOSUPERUSER and NOBYPASSRLS, policies in place.

Usage:
    APP_ROLE=tenantguard_app uv run python -m scripts.verify_rls_roles
    VERIFY_RLS_POLICIES=0 uv run python -m scripts.verify_rls_roles   # role check only

Reads DATABASE_URL from environment (or .env via tenantguard.core.config).
APP_ROLE defaults to the user from DATABASE_URL. With policy checks (default),
every tenant-scoped table must have RLS enabled and forced with the
org_isolation policy. Exits 0 if checks pass, 1 otherwise.
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from tenantguard.infrastructure.persistence.rls_check import run_rls_check


def _load_env() -> None:
    """Load .env from project root so get_settings() sees DATABASE_URL when run as script."""
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")


async def _main() -> int:
    _load_env()
    app_role = os.environ.get("VERIFY_RLS_APP_ROLE") or os.environ.get("APP_ROLE")
    verify_policies = os.environ.get("VERIFY_RLS_POLICIES", "1").lower() in ("1", "true", "yes")

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        try:
            from tenantguard.core.config import get_settings

            database_url = get_settings().database_url
        except ValidationError as e:
            print(f"Could not get DATABASE_URL or settings: {e}", file=sys.stderr)
            return 1

    result = await run_rls_check(
        database_url, app_role=app_role, verify_policies=verify_policies
    )
    if not result.ok:
        print(result.message, file=sys.stderr)
        return 1

    for status in result.tables:
        print(f"  {status.table}: enabled, forced, org_isolation")
    print(result.message)
    return 0


def main() -> None:
    exit_code = asyncio.run(_main())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
