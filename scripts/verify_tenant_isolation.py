"""Run the tenant isolation harness against a live database.

Usage:
    uv run python -m scripts.verify_tenant_isolation --seed
    uv run python -m scripts.verify_tenant_isolation --org <ORG-A uuid> --org <ORG-B uuid>
    uv run python -m scripts.verify_tenant_isolation --seed --table customers --table jobs

--seed creates ORG-A (12 customers) and ORG-B (5 customers) with one row in
every other tenant-scoped table, and verifies against them. Connect as the
application role: a role with BYPASSRLS or SUPERUSER makes every policy check
meaningless and is reported as a failure.

Exit codes: 0 all checks passed, 1 failures (including policy gaps),
2 isolation violation detected.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from uuid import UUID

from dotenv import load_dotenv
from sqlalchemy.exc import DBAPIError

from tenantguard.core.config import get_settings
from tenantguard.infrastructure.persistence.database import (
    create_engine_from_settings,
    make_session_factory,
)
from tenantguard.infrastructure.persistence.rls_check import check_role
from tenantguard.shared.logging import setup_logging
from tenantguard.verification.fixtures import seed_isolation_fixture
from tenantguard.verification.harness import IsolationHarness
from tenantguard.verification.report import ALL_TABLES, EXIT_FAILED, IsolationReport

logger = logging.getLogger("scripts.verify_tenant_isolation")


def _load_env() -> None:
    """Load .env from project root so get_settings() sees DATABASE_URL when run as script."""
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _org_id(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a UUID: {value}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="verify_tenant_isolation",
        description="Verify that tenant-scoped tables leak no rows across organizations.",
    )
    parser.add_argument(
        "--org",
        dest="orgs",
        action="append",
        type=_org_id,
        default=[],
        metavar="UUID",
        help="Organization with fixture data (repeatable; first two are ORG-A and ORG-B)",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Create the ORG-A/ORG-B fixture before verifying",
    )
    parser.add_argument(
        "--table",
        dest="tables",
        action="append",
        default=[],
        metavar="NAME",
        help="Restrict to these tables (repeatable; default: all registered)",
    )
    parser.add_argument(
        "--allow-empty",
        action="store_true",
        help="Do not fail tables the legitimate org sees no rows in",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="List every check")
    return parser


async def _main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _load_env()
    settings = get_settings()
    setup_logging(settings.debug)

    engine = create_engine_from_settings()
    try:
        org_ids = list(args.orgs)
        if args.seed:
            seeded = await seed_isolation_fixture(make_session_factory(engine))
            org_ids = [s.org_id for s in seeded] + org_ids
        if not org_ids:
            print("Provide at least one --org or use --seed", file=sys.stderr)
            return EXIT_FAILED

        report = IsolationReport()
        app_role = settings.rls_check_app_role or engine.url.username
        if app_role:
            try:
                async with engine.connect() as conn:
                    role = await check_role(conn, app_role)
                report.add(ALL_TABLES, "app role", role.ok, role.message)
            except DBAPIError as e:
                logger.error("App role check failed: %s", e.orig)
                report.add(ALL_TABLES, "app role", False, f"statement failed: {e.orig}")

        harness = IsolationHarness(
            engine,
            tables=args.tables or None,
            legitimate_org_ids=org_ids,
            require_populated=settings.harness_require_populated and not args.allow_empty,
        )
        report.extend(await harness.run())
    finally:
        await engine.dispose()

    print(report.render(verbose=args.verbose))
    return report.exit_code


def main() -> None:
    exit_code = asyncio.run(_main())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
