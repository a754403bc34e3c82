"""
Tributary API
=============

FastAPI application entry point.
Configures routes, exception handlers and the process runtime.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tributary.api.config import settings
from tributary.api.middleware.exceptions import register_exception_handlers
from tributary.api.routes import connectors, health
from tributary.core.database.session import close_database
from tributary.core.observability.logging import configure_logging
from tributary.platform.composition_root import bootstrap

configure_logging(log_level=settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")
    bootstrap(settings)
    if not settings.api_key:
        logger.warning("API_KEY is not set: connector endpoints are unauthenticated")

    yield

    logger.info("Shutting down")
    await close_database()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(connectors.router)
    return app


app = create_app()
