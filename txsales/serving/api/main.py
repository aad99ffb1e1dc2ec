"""
FastAPI Application Factory

Creates and configures the API application. Without injected components the
lifespan connects the database, wires the pipeline and starts the refresh
scheduler; with them (tests, scripts) it leaves everything as given.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from txsales.config import get_settings
from txsales.config.logging import configure_logging
from txsales.database.connection import close_database, get_session_factory, init_database
from txsales.serving.api.dependencies import AppComponents, build_components
from txsales.serving.api.middleware import (
    ContentSecurityPolicyMiddleware,
    RequestLoggingMiddleware,
)
from txsales.serving.api.routes import (
    admin_router,
    analytics_router,
    areas_router,
    health_router,
    locations_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    if getattr(app.state, "components", None) is not None:
        yield
        return

    settings = get_settings()
    configure_logging(settings.monitoring.log_level)
    logger.info("Starting Texas Sales API", environment=settings.app_env)

    await init_database(create_tables=not settings.is_production)
    components = build_components(get_session_factory(), settings)
    app.state.components = components

    if settings.importer.scheduler_enabled and components.scheduler is not None:
        await components.scheduler.start()

    yield

    logger.info("Shutting down...")
    if components.scheduler is not None:
        await components.scheduler.stop()
    await close_database()
    app.state.components = None


def create_api_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        components: Pre-built store, cache and importer; skips startup wiring

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Texas Mixed Beverage Sales API",
        description="Aggregated alcohol sales by permit from Texas open data",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ContentSecurityPolicyMiddleware)

    app.include_router(health_router, prefix="/api", tags=["Health"])
    app.include_router(locations_router, prefix="/api/locations", tags=["Locations"])
    app.include_router(areas_router, prefix="/api", tags=["Areas"])
    app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
    app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])

    @app.get("/api/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Texas Mixed Beverage Sales API",
            "version": settings.version,
            "environment": settings.app_env,
        }

    return app
