"""
Builder Application Lifespan Handler

Startup:
    - Logging, directories, singletons
    - Preload PROMPT.md (failure is logged, not fatal)
    - Start the periodic PineUI version refresh (first run immediately)
    - Report whether the local design guide exists

Shutdown:
    - Stop the refresh loop, wait for bundle downloads, close HTTP clients
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from apps.services.builder.config import ensure_dirs, read_design_guide, settings
from apps.services.builder.dependencies import (
    close_all,
    get_document_cache,
    get_version_resolver,
    initialize_all,
)
from libs.core.exceptions import BuilderError
from libs.core.logging_config import get_logger, setup_logging

# uvicorn.error until setup_logging has run
logger = logging.getLogger("uvicorn.error")


async def version_refresh_loop(resolver, interval_seconds: float) -> None:
    """Resolve the PineUI version now and then every interval."""
    while True:
        await resolver.get_version()
        await asyncio.sleep(interval_seconds)


async def preload_context(cache) -> None:
    try:
        await cache.get_document()
    except BuilderError as e:
        get_logger("builder").error(f"Failed to preload PROMPT.md: {e.message}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ==========================================================================
    # STARTUP
    # ==========================================================================

    setup_logging(level=settings.log_level, service_name="builder")
    builder_logger = get_logger("builder")
    builder_logger.info("PineUI Builder starting...")

    ensure_dirs()
    initialize_all()

    await preload_context(get_document_cache())

    refresh_task = asyncio.create_task(
        version_refresh_loop(
            get_version_resolver(),
            settings.pineui.version_refresh_interval_seconds,
        ),
        name="pineui-version-refresh",
    )

    design = read_design_guide()
    if design:
        builder_logger.info(f"Design guide loaded ({len(design)} chars)")
    else:
        builder_logger.warning("data/DESIGN.md not found, design guide will be empty")

    builder_logger.info(f"Running at http://localhost:{settings.server.port}")
    builder_logger.info(
        f"Rate limit: {settings.rate_limit.max_requests} req/"
        f"{settings.rate_limit.window_seconds:.0f}s per IP"
    )

    yield

    # ==========================================================================
    # SHUTDOWN
    # ==========================================================================

    builder_logger.info("PineUI Builder shutting down...")

    refresh_task.cancel()
    try:
        await refresh_task
    except asyncio.CancelledError:
        pass

    await close_all()
    builder_logger.info("PineUI Builder shutdown complete")
