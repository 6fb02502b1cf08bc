"""Application lifespan: startup and shutdown.

Startup configures logging; shutdown disposes the SQL engine (if it was
created). No business logic here.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from tenantguard.core.config import get_settings
from tenantguard.shared.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown."""
    settings = get_settings()

    # ---- Startup ----
    setup_logging(settings.debug)
    logger.info(
        "%s %s starting (org setting %s)",
        settings.app_name,
        settings.app_version,
        settings.org_setting_name,
    )

    yield

    # ---- Shutdown ----
    from tenantguard.infrastructure.persistence import database

    if database.engine is not None:
        await database.dispose_engine()
        logger.info("Database engine disposed")
